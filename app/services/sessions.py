"""Server-side session store.

The browser only holds an opaque session id in a cookie; user binding and
flash messages live in the ``sessions`` table. Expiry slides forward on every
read, and expired rows are unreadable until the sweeper deletes them.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import SessionLocal
from app.errors import PersistenceError
from app.models.session import UserSession

logger = logging.getLogger("vidjot")

FLASH_KEY = "_flash"

# Tests point this at their own database session
_session_factory: Callable[[], Session] | None = None


def _open_db() -> Session:
    return (_session_factory or SessionLocal)()


@dataclass
class SessionRecord:
    session_id: str
    user_id: int | None
    data: dict[str, Any]
    expires_at: datetime


@dataclass
class Flash:
    category: str
    text: str


@dataclass
class WebSession:
    """Request-scoped view of a server session. Only modified sessions are saved."""

    session_id: str | None = None
    user_id: int | None = None
    data: dict[str, Any] = field(default_factory=dict)
    modified: bool = False
    regenerate: bool = False
    destroyed: bool = False

    @classmethod
    def from_record(cls, record: SessionRecord | None) -> "WebSession":
        if record is None:
            return cls()
        return cls(session_id=record.session_id, user_id=record.user_id, data=dict(record.data))

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def login(self, user_id: int) -> None:
        """Bind the session to a user under a fresh session id."""
        self.user_id = user_id
        self.regenerate = True
        self.destroyed = False
        self.modified = True

    def logout(self) -> None:
        self.user_id = None
        self.data = {}
        self.destroyed = True

    def flash(self, category: str, text: str) -> None:
        self.data.setdefault(FLASH_KEY, []).append({"category": category, "text": text})
        self.modified = True

    def pop_flashes(self) -> list[Flash]:
        """Return pending flash messages and forget them."""
        pending = self.data.pop(FLASH_KEY, [])
        if pending:
            self.modified = True
        return [Flash(**item) for item in pending]


class SessionStore:
    """Persists sessions in the database with a sliding expiry."""

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self.ttl = timedelta(seconds=ttl_seconds or get_settings().SESSION_EXPIRE_SECONDS)

    def _expiry(self) -> datetime:
        return datetime.utcnow() + self.ttl

    def load(self, session_id: str) -> SessionRecord | None:
        """Fetch a live session and push its expiry forward. Unknown or expired ids give None."""
        db = _open_db()
        try:
            row = db.get(UserSession, session_id)
            if row is None or row.expires_at <= datetime.utcnow():
                return None
            row.expires_at = self._expiry()
            db.commit()
            return SessionRecord(
                session_id=row.session_id,
                user_id=row.user_id,
                data=dict(row.data or {}),
                expires_at=row.expires_at,
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to load session: %s", e)
            return None
        finally:
            db.close()

    def save(self, session: WebSession) -> str:
        """Write a session and return its id, minting a new one if needed."""
        db = _open_db()
        try:
            if session.session_id and session.regenerate:
                db.query(UserSession).filter(UserSession.session_id == session.session_id).delete()
                session.session_id = None

            row = db.get(UserSession, session.session_id) if session.session_id else None
            if row is None:
                row = UserSession(session_id=secrets.token_urlsafe(32))
                db.add(row)
            row.user_id = session.user_id
            row.data = dict(session.data)
            row.expires_at = self._expiry()
            session_id = row.session_id
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to save session: %s", e)
            raise PersistenceError() from e
        finally:
            db.close()

        session.session_id = session_id
        session.regenerate = False
        session.modified = False
        return session.session_id

    def destroy(self, session_id: str) -> None:
        db = _open_db()
        try:
            db.query(UserSession).filter(UserSession.session_id == session_id).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to destroy session: %s", e)
            raise PersistenceError() from e
        finally:
            db.close()

    def purge_expired(self) -> int:
        """Delete every expired session. Returns how many were removed."""
        db = _open_db()
        try:
            count = db.query(UserSession).filter(UserSession.expires_at <= datetime.utcnow()).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Session sweep failed: %s", e)
            return 0
        finally:
            db.close()
        if count:
            logger.info("Purged %d expired sessions", count)
        return count


_session_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get singleton session store instance."""
    global _session_store
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store
