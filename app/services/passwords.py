"""Password hashing and input rules."""

import bcrypt

from app.config import get_settings

MIN_PASSWORD_LENGTH = 4


def hash_password(plain: str) -> str:
    """Salted bcrypt hash using the configured work factor."""
    salt = bcrypt.gensalt(rounds=get_settings().BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, password_hash: str) -> bool:
    if not plain or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def check_new_password(password: str, password_confirmation: str) -> list[str]:
    """Return the messages for every rule the new password breaks (empty if valid)."""
    errors = []
    if password != password_confirmation:
        errors.append("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return errors
