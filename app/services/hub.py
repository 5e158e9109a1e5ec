"""Realtime chat hub.

Every connected WebSocket is a peer with a display name that starts as
"Anonymous". Messages and group listings are broadcast to every peer
connected at dispatch time; nothing is buffered for peers that join later.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.websockets import WebSocketDisconnect

from app.database import SessionLocal
from app.errors import PersistenceError
from app.repositories.group import GroupRecord, GroupRepository
from app.schemas.chat import ChangeUsername, ChatMessageOut, Frame, GroupOut, NewGroup, NewMessage

logger = logging.getLogger("vidjot")

ANONYMOUS = "Anonymous"

# Tests point this at their own database session
_session_factory: Callable[[], Session] | None = None


def _list_groups() -> list[GroupRecord]:
    db = (_session_factory or SessionLocal)()
    try:
        return GroupRepository(db).list_all()
    finally:
        db.close()


def _create_group(name: str) -> GroupRecord:
    db = (_session_factory or SessionLocal)()
    try:
        return GroupRepository(db).create(name)
    finally:
        db.close()


class Peer(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass(eq=False)
class Connection:
    """One live socket and the name it chats under."""

    peer: Peer
    username: str = ANONYMOUS


class ChatHub:
    """Publish/subscribe fan-out over every connected peer."""

    def __init__(self) -> None:
        self.connections: list[Connection] = []
        self._handlers = {
            "change_username": self.change_username,
            "new_message": self.new_message,
            "get_grp": self.get_groups,
            "new_grp": self.new_group,
        }

    def connect(self, peer: Peer) -> Connection:
        connection = Connection(peer=peer)
        self.connections.append(connection)
        logger.info("New user connected (%d online)", len(self.connections))
        return connection

    def disconnect(self, connection: Connection) -> None:
        if connection in self.connections:
            self.connections.remove(connection)
            logger.info("User %s disconnected (%d online)", connection.username, len(self.connections))

    async def broadcast(self, event: str, data: Any) -> None:
        """Send one event to every peer connected right now, dropping peers that fail."""
        frame = Frame(event=event, data=data).model_dump()
        for connection in list(self.connections):
            try:
                await connection.peer.send_json(frame)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.warning("Dropping peer %s after failed send: %s", connection.username, e)
                self.disconnect(connection)

    async def dispatch(self, connection: Connection, raw: str) -> None:
        """Route one inbound frame. Bad frames are logged and ignored."""
        try:
            frame = Frame.model_validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring malformed frame from %s", connection.username)
            return

        handler = self._handlers.get(frame.event)
        if handler is None:
            logger.warning("Ignoring unknown event %r from %s", frame.event, connection.username)
            return

        try:
            await handler(connection, frame.data)
        except ValidationError as e:
            logger.warning("Ignoring invalid %s payload from %s: %s", frame.event, connection.username, e)
        except PersistenceError:
            logger.error("Event %s from %s failed to persist", frame.event, connection.username)

    async def change_username(self, connection: Connection, data: Any) -> None:
        connection.username = ChangeUsername.model_validate(data).username

    async def new_message(self, connection: Connection, data: Any) -> None:
        body = NewMessage.model_validate(data)
        out = ChatMessageOut(message=body.message, username=connection.username)
        await self.broadcast("new_message", out.model_dump())

    async def get_groups(self, connection: Connection, data: Any) -> None:
        # Goes to every peer, not only the requester, so all group lists stay in sync
        groups = await run_in_threadpool(_list_groups)
        await self.broadcast("groups", [GroupOut(**g.to_dict()).model_dump() for g in groups])

    async def new_group(self, connection: Connection, data: Any) -> None:
        if isinstance(data, str):
            data = {"name": data}
        body = NewGroup.model_validate(data)
        group = await run_in_threadpool(_create_group, body.name)
        logger.info("Group %r created by %s (group_id=%s)", group.name, connection.username, group.group_id)


_hub: ChatHub | None = None


def get_hub() -> ChatHub:
    """Get singleton hub instance."""
    global _hub
    if _hub is None:
        _hub = ChatHub()
    return _hub
