"""HTTP and WebSocket routers."""

from app.routers.chat import router as chat_router
from app.routers.user import router as user_router

__all__ = ["user_router", "chat_router"]
