"""Chat page and realtime WebSocket endpoint."""

import logging

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from app.dependencies import CurrentUser, require_web_auth
from app.services.hub import get_hub
from app.templating import render

logger = logging.getLogger("vidjot")

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.get("", response_class=HTMLResponse)
def chat_page(request: Request, user: CurrentUser = Depends(require_web_auth)) -> HTMLResponse:
    """Render the chat room."""
    return render(request, "chat.html", {"user": user})


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket) -> None:
    """One hub connection per socket. Identity lives only as long as the socket."""
    hub = get_hub()
    await websocket.accept()
    connection = hub.connect(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                logger.warning("Ignoring non-text frame from %s", connection.username)
                continue
            await hub.dispatch(connection, raw)
    except WebSocketDisconnect as e:
        logger.debug("Socket closed with code %s", e.code)
    finally:
        hub.disconnect(connection)
