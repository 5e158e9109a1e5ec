"""Signed, time-limited tokens (JWT)."""

from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.config import get_settings
from app.errors import InvalidOrExpiredTokenError


def derive_reset_key(server_secret: str, password_hash: str) -> str:
    """Signing key for reset tokens. Changes whenever the password does."""
    return server_secret + password_hash


class TokenSigner:
    """Signs payloads with a caller-supplied key and verifies them back."""

    def __init__(self, algorithm: str | None = None) -> None:
        self.algorithm = algorithm or get_settings().JWT_ALGORITHM

    def sign(self, payload: dict[str, Any], key: str, ttl: timedelta) -> str:
        """Create a token for ``payload`` that expires after ``ttl``."""
        claims = dict(payload)
        claims["exp"] = datetime.utcnow() + ttl
        return jwt.encode(claims, key, algorithm=self.algorithm)

    def verify(self, token: str, key: str) -> dict[str, Any]:
        """Decode a token. Raises InvalidOrExpiredTokenError on a bad signature, garbage or expiry."""
        try:
            return jwt.decode(token, key, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidOrExpiredTokenError() from e


_token_signer: TokenSigner | None = None


def get_token_signer() -> TokenSigner:
    """Get singleton token signer instance."""
    global _token_signer
    if _token_signer is None:
        _token_signer = TokenSigner()
    return _token_signer
