"""Jinja2 templates with flash messages wired in."""

from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.dependencies import get_web_session
from app.services.sessions import Flash

templates = Jinja2Templates(directory="templates")


def render(
    request: Request,
    name: str,
    context: dict | None = None,
    status_code: int = 200,
    alerts: list[Flash] | None = None,
) -> HTMLResponse:
    """Render a page, consuming any pending flash messages for this session.

    ``alerts`` are shown alongside the flashes but never stored, for messages
    that belong to this response only.
    """
    session = get_web_session(request)
    ctx = {
        "flashes": session.pop_flashes() + (alerts or []),
        "logged_in": session.is_authenticated,
    }
    ctx.update(context or {})
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)
