"""Authentication service: registration, login and profile updates."""

import logging
from typing import Protocol

from sqlalchemy.orm import Session

from app.errors import AuthError, DuplicateAccountError, NotFoundError, ValidationError
from app.repositories.user import UserRecord, UserRepository
from app.services.passwords import check_new_password, hash_password, verify_password

logger = logging.getLogger("vidjot")


class CredentialStrategy(Protocol):
    """Checks a login attempt and returns the matching user or raises AuthError."""

    def verify(self, db: Session, email: str, password: str) -> UserRecord: ...


class LocalCredentialStrategy:
    """Email + password checked against the stored bcrypt hash."""

    def verify(self, db: Session, email: str, password: str) -> UserRecord:
        user = UserRepository(db).get_by_email(email)
        if user is None:
            raise AuthError(reason="no such user")
        if not verify_password(password, user.password_hash):
            raise AuthError(reason="wrong password")
        return user


class AuthService:
    """Handles user registration, login and profile updates."""

    def __init__(self, strategy: CredentialStrategy | None = None) -> None:
        self.strategy = strategy or LocalCredentialStrategy()

    def register(
        self, db: Session, name: str, email: str, password: str, password_confirmation: str
    ) -> UserRecord:
        """Create an account.

        Raises ValidationError for password rule failures, DuplicateAccountError
        if the email is taken and PersistenceError if the insert fails.
        """
        errors = check_new_password(password, password_confirmation)
        if errors:
            raise ValidationError(errors)

        users = UserRepository(db)
        if users.get_by_email(email):
            raise DuplicateAccountError(f"{email} already registered")

        user = users.create(name=name, email=email, password_hash=hash_password(password))
        logger.info("Registered user %s (id=%d)", user.email, user.id)
        return user

    def login(self, db: Session, email: str, password: str) -> UserRecord:
        """Verify credentials with the configured strategy. Raises AuthError on failure."""
        try:
            return self.strategy.verify(db, email, password)
        except AuthError:
            # Same line for unknown users and bad passwords
            logger.info("Login failed for %s", email)
            raise

    def update_profile(self, db: Session, user_id: int, name: str, email: str) -> UserRecord:
        """Overwrite name and email atomically. Raises NotFoundError or PersistenceError."""
        user = UserRepository(db).update_profile(user_id, name=name, email=email)
        logger.info("Updated profile of user id=%d", user_id)
        return user

    def get_user(self, db: Session, user_id: int) -> UserRecord:
        user = UserRepository(db).get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"No user with id {user_id}")
        return user


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
