"""Configuration settings for Vidjot."""

import os
import secrets
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./vidjot.db")

    # Server-wide secret (reset tokens are signed with SECRET_KEY + password hash)
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    RESET_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "15"))

    # Server-side sessions
    SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "vidjot_session")
    SESSION_EXPIRE_SECONDS: int = int(os.getenv("SESSION_EXPIRE_SECONDS", "900"))
    SESSION_SWEEP_INTERVAL_SECONDS: int = int(os.getenv("SESSION_SWEEP_INTERVAL_SECONDS", "900"))

    # Password hashing
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

    # Application
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:5000")
    PORT: int = int(os.getenv("PORT", "5000"))
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    def __init__(self) -> None:
        self._generated_secret = not self.SECRET_KEY
        if self._generated_secret:
            self.SECRET_KEY = secrets.token_urlsafe(32)

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if self._generated_secret:
            errors.append("SECRET_KEY is not set - using auto-generated key (reset links die on restart)")
        if self.BCRYPT_ROUNDS < 4:
            errors.append("BCRYPT_ROUNDS below 4 is rejected by bcrypt")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
