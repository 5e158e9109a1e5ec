"""Vidjot - video journal with accounts and realtime chat."""

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.dependencies import (
    CurrentUser,
    ServerSessionMiddleware,
    get_current_user_optional,
    get_web_session,
    require_web_auth,
)
from app.errors import VidjotError
from app.rate_limit import limiter
from app.routers import chat_router, user_router
from app.services.sessions import WebSession, get_session_store
from app.templating import render

# Logging
logger = logging.getLogger("vidjot")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = get_settings()
for warning in settings.validate():
    logger.warning(warning)


async def sweep_expired_sessions(interval_seconds: int) -> None:
    """Purge expired server sessions forever, once per interval."""
    store = get_session_store()
    while True:
        await asyncio.sleep(interval_seconds)
        await run_in_threadpool(store.purge_expired)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    sweeper = asyncio.create_task(sweep_expired_sessions(settings.SESSION_SWEEP_INTERVAL_SECONDS))
    logger.info("Server started on port %d", settings.PORT)
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(title="Vidjot", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self' ws: wss:; "
            "font-src 'self'"
        )
        return response


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = ("/user/register", "/user/login", "/user/update", "/user/showForgot", "/user/reset-password")

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        path = request.url.path
        if request.method == "POST" and path.startswith(self.AUDIT_PATHS):
            logger.info(
                "AUDIT %s %s -> %d (%.0fms) from %s",
                request.method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(ServerSessionMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(AuditLogMiddleware)

# Static files
app.mount("/static", StaticFiles(directory="static"), name="static")

app.include_router(user_router)
app.include_router(chat_router)


# --- Rate limit error handler ---
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Handle rate limit exceeded."""
    return HTMLResponse(content="<h1>429</h1><p>Too many requests. Please try again later.</p>", status_code=429)


# --- Exception handler: 401 -> redirect to login page ---
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Redirect unauthenticated requests to the login page, render everything else."""
    if exc.status_code == 401:
        return RedirectResponse(url="/showLogin", status_code=302)
    return render(request, "error.html", {"title": str(exc.status_code), "message": exc.detail}, exc.status_code)


# --- Exception handler: unhandled application errors -> generic error page ---
@app.exception_handler(VidjotError)
async def app_error_handler(request: Request, exc: VidjotError) -> Response:
    """Failures nobody recovered from (store errors mostly) end up on a generic page."""
    logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return render(request, "error.html", {"title": "Something went wrong", "message": exc.message}, 500)


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "vidjot", "version": "0.1.0"}


# --- Web pages ---
@app.get("/", response_class=HTMLResponse)
def index(request: Request, user: CurrentUser | None = Depends(get_current_user_optional)) -> HTMLResponse:
    """Render the landing page."""
    return render(request, "index.html", {"user": user})


@app.get("/showLogin", response_class=HTMLResponse)
def login_page(request: Request, user: CurrentUser | None = Depends(get_current_user_optional)) -> HTMLResponse:
    """Render login page."""
    if user:
        return RedirectResponse(url="/chat", status_code=302)  # type: ignore[return-value]
    return render(request, "user/login.html")


@app.get("/showRegister", response_class=HTMLResponse)
def register_page(request: Request, user: CurrentUser | None = Depends(get_current_user_optional)) -> HTMLResponse:
    """Render register page."""
    if user:
        return RedirectResponse(url="/chat", status_code=302)  # type: ignore[return-value]
    return render(request, "user/register.html")


@app.get("/showForgot", response_class=HTMLResponse)
def forgot_page(request: Request) -> HTMLResponse:
    """Render forgot-password page."""
    return render(request, "user/forgot.html")


@app.get("/showProfile", response_class=HTMLResponse)
def profile_page(request: Request, user: CurrentUser = Depends(require_web_auth)) -> HTMLResponse:
    """Render the logged-in user's profile."""
    return render(request, "user/profile.html", {"user": user})


@app.get("/logout")
def logout(session: WebSession = Depends(get_web_session)) -> RedirectResponse:
    """Destroy the server session and go back to the login page."""
    session.logout()
    return RedirectResponse(url="/showLogin", status_code=302)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
