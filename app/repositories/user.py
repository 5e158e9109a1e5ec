"""Credential store: typed access to user records."""

import logging
from dataclasses import dataclass
from typing import NoReturn

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import NotFoundError, PersistenceError
from app.models.user import User

logger = logging.getLogger("vidjot")


@dataclass(frozen=True)
class UserRecord:
    """Detached snapshot of a user row."""

    id: int
    name: str
    email: str
    password_hash: str

    @classmethod
    def from_model(cls, user: User) -> "UserRecord":
        return cls(id=user.id, name=user.name, email=user.email, password_hash=user.password_hash)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    """CRUD for users. Store failures are rolled back and raised as PersistenceError."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_id(self, user_id: int) -> UserRecord | None:
        try:
            user = self.db.get(User, user_id)
        except SQLAlchemyError as e:
            self._fail("load user", e)
        return UserRecord.from_model(user) if user else None

    def get_by_email(self, email: str) -> UserRecord | None:
        try:
            user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        except SQLAlchemyError as e:
            self._fail("look up user by email", e)
        return UserRecord.from_model(user) if user else None

    def create(self, name: str, email: str, password_hash: str) -> UserRecord:
        user = User(name=name.strip(), email=normalize_email(email), password_hash=password_hash)
        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except SQLAlchemyError as e:
            self._fail("create user", e)
        return UserRecord.from_model(user)

    def update_profile(self, user_id: int, name: str, email: str) -> UserRecord:
        """Write name and email in a single statement and transaction."""
        self._update(user_id, "update profile", name=name.strip(), email=normalize_email(email))
        return self._require(user_id)

    def update_password(self, user_id: int, password_hash: str) -> UserRecord:
        self._update(user_id, "update password", password_hash=password_hash)
        return self._require(user_id)

    def _update(self, user_id: int, action: str, **values: str) -> None:
        try:
            result = self.db.execute(update(User).where(User.id == user_id).values(**values))
            if result.rowcount == 0:
                self.db.rollback()
                raise NotFoundError(f"No user with id {user_id}")
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail(action, e)
        # Bulk UPDATE bypasses the identity map
        self.db.expire_all()

    def _require(self, user_id: int) -> UserRecord:
        record = self.get_by_id(user_id)
        if record is None:
            raise NotFoundError(f"No user with id {user_id}")
        return record

    def _fail(self, action: str, error: SQLAlchemyError) -> NoReturn:
        self.db.rollback()
        logger.error("Failed to %s: %s", action, error)
        raise PersistenceError() from error
