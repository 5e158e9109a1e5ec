"""Session middleware and authentication dependencies for FastAPI routes."""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.database import get_db
from app.repositories.user import UserRepository
from app.services.sessions import WebSession, get_session_store


@dataclass
class CurrentUser:
    """Authenticated user context."""

    user_id: int
    name: str
    email: str


class ServerSessionMiddleware(BaseHTTPMiddleware):
    """Loads the server session named by the cookie and writes it back if it changed."""

    async def dispatch(self, request: Request, call_next) -> Response:
        settings = get_settings()
        store = get_session_store()

        session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
        record = await run_in_threadpool(store.load, session_id) if session_id else None
        session = WebSession.from_record(record)
        request.state.session = session

        response = await call_next(request)

        if session.destroyed:
            if session.session_id:
                await run_in_threadpool(store.destroy, session.session_id)
            response.delete_cookie(key=settings.SESSION_COOKIE_NAME)
        elif session.modified or session.regenerate:
            new_id = await run_in_threadpool(store.save, session)
            response.set_cookie(
                key=settings.SESSION_COOKIE_NAME,
                value=new_id,
                httponly=True,
                samesite="lax",
                secure=settings.APP_ENV == "production",
            )
        elif session_id and record is None:
            # Cookie names a session that expired or never existed
            response.delete_cookie(key=settings.SESSION_COOKIE_NAME)
        return response


def get_web_session(request: Request) -> WebSession:
    """Session loaded by ServerSessionMiddleware (a blank one outside the middleware)."""
    session = getattr(request.state, "session", None)
    if session is None:
        session = WebSession()
        request.state.session = session
    return session


def get_current_user_optional(
    session: WebSession = Depends(get_web_session),
    db: Session = Depends(get_db),
) -> CurrentUser | None:
    """Resolve the logged-in user, or None if the session is anonymous or stale."""
    if session.user_id is None:
        return None
    user = UserRepository(db).get_by_id(session.user_id)
    if user is None:
        return None
    return CurrentUser(user_id=user.id, name=user.name, email=user.email)


def require_web_auth(user: CurrentUser | None = Depends(get_current_user_optional)) -> CurrentUser:
    """Require a logged-in session. Raises 401, which the app turns into a redirect to login."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user
