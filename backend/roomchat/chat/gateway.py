"""Realtime session gateway.

Drives the per-connection state machine::

    Connected -> Authenticated -> InRoom -> Disconnected

Authentication happens once, at connect time. Guarded events sent by an
unauthenticated connection are refused with ``error {"message": "Unauthorized"}``
and the connection stays open so the client can react (e.g. redirect to login).

Client -> server events:
    - room:join {roomSlug}
    - message:send {text}
    - message:list

Server -> client events:
    - room:join {room, messages}   (reply to the joiner only)
    - message:new {id, text, userId, userName, createdAt}
    - message:list [messages]
    - user:joined / user:left {userId, userName, timestamp}
    - error {message}
"""
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket
from pydantic import ValidationError as PayloadError

from roomchat.auth.service import IdentityVerifier
from roomchat.config import get_config
from roomchat.database import get_database
from roomchat.errors import NotFound, Unauthenticated
from roomchat.models import utcnow
from roomchat.rooms.service import RoomDirectory

from .manager import ConnectionManager, ConnectionSession, manager
from .schemas import JoinRoomPayload, PresenceEvent, RoomJoined, SendMessagePayload
from .service import MessageLog

logger = logging.getLogger(__name__)

UNAUTHORIZED = "Unauthorized"
ROOM_NOT_FOUND = "Room not found"
ROOM_FULL = "Room is full"
NOT_IN_ROOM = "You must join a room first"
INVALID_PAYLOAD = "Invalid event payload"
JOIN_FAILED = "Failed to join room"
SEND_FAILED = "Failed to send message"

Handler = Callable[[ConnectionSession, Any], Awaitable[None]]


def validate_message_text(text: str, max_length: int) -> Optional[str]:
    """Return an error message for unacceptable text, None when it is fine."""
    if not text.strip():
        return "Message text must not be empty"
    if len(text) > max_length:
        return f"Message text must be at most {max_length} characters"
    return None


class ChatGateway:
    def __init__(self, connections: ConnectionManager):
        self.connections = connections
        self._handlers: Dict[str, Handler] = {
            "room:join": self.handle_join_room,
            "message:send": self.handle_send_message,
            "message:list": self.handle_list_messages,
        }

    async def error(self, session: ConnectionSession, message: str) -> None:
        await self.connections.send(session, "error", {"message": message})

    def _presence(self, session: ConnectionSession) -> dict:
        return PresenceEvent(
            userId=session.user.id,
            userName=session.user.name,
            timestamp=utcnow(),
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    async def handle_connect(self, websocket: WebSocket, token: Optional[str]) -> ConnectionSession:
        """Accept the connection and verify its credential once."""
        session = await self.connections.connect(websocket)
        try:
            async with get_database().session() as db:
                user = await IdentityVerifier(db).verify(token)
        except Unauthenticated as e:
            logger.info(f"[WS] Connection {session.connection_id} not authenticated: {e.message}")
            await self.error(session, UNAUTHORIZED)
            return session
        except Exception:
            logger.exception(f"[WS] Credential check failed for {session.connection_id}")
            await self.error(session, UNAUTHORIZED)
            return session

        self.connections.authenticate(session, user)
        return session

    async def handle_disconnect(self, session: ConnectionSession) -> None:
        room_id = self.connections.disconnect(session)
        if room_id is not None and session.user is not None:
            logger.info(f"[WS] {session.user.name} left room {room_id}")
            await self.connections.broadcast(room_id, "user:left", self._presence(session))

    # -------------------------------------------------------------------------
    # Frame dispatch
    # -------------------------------------------------------------------------

    async def handle_frame(self, session: ConnectionSession, raw: Optional[str]) -> None:
        """Decode one frame and route it to the matching handler.

        ``raw`` is None for frames without text (binary frames).
        """
        frame = None
        if raw is not None:
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                pass
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self.error(session, INVALID_PAYLOAD)
            return

        event = frame["event"]
        logger.debug(f"[WS] {session.connection_id} received: event={event}")
        handler = self._handlers.get(event)
        if handler is None:
            await self.error(session, f"Unknown event: {event}")
            return
        await handler(session, frame.get("data"))

    async def _require_user(self, session: ConnectionSession) -> bool:
        if not session.authenticated:
            await self.error(session, UNAUTHORIZED)
            return False
        return True

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    async def handle_join_room(self, session: ConnectionSession, data: Any) -> None:
        """Subscribe to a room, announce the joiner and reply with history.

        Joining a different room first leaves the current one. Re-joining the
        current room only re-sends the reply.
        """
        if not await self._require_user(session):
            return
        try:
            payload = JoinRoomPayload.model_validate(data)
        except PayloadError:
            await self.error(session, INVALID_PAYLOAD)
            return

        config = get_config()
        previous_room: Optional[str] = None
        full = False
        try:
            async with get_database().session() as db:
                try:
                    room = await RoomDirectory(db).get_room_by_slug(payload.roomSlug)
                except NotFound:
                    await self.error(session, ROOM_NOT_FOUND)
                    return

                messages = await MessageLog(db).recent(room.id, config.chat.history_limit)

                # capacity check and join must not be split by an await
                rejoin = session.room_id == room.id
                if (
                    not rejoin
                    and config.rooms.enforce_capacity
                    and self.connections.group_size(room.id) >= room.maxUsers
                ):
                    full = True
                elif not rejoin:
                    previous_room = self.connections.leave(session)
                    self.connections.join(session, room.id, room.slug)
        except Exception:
            logger.exception(f"[WS] room:join failed for {session.connection_id}")
            await self.error(session, JOIN_FAILED)
            return

        if full:
            await self.error(session, ROOM_FULL)
            return

        if previous_room is not None:
            await self.connections.broadcast(previous_room, "user:left", self._presence(session))
        if not rejoin:
            logger.info(
                f"[WS] Broadcasting user:joined for {session.user.name} in {room.slug}. "
                f"Total connections: {self.connections.group_size(room.id)}"
            )
            await self.connections.broadcast(room.id, "user:joined", self._presence(session))

        reply = RoomJoined(room=room, messages=messages)
        await self.connections.send(session, "room:join", reply.model_dump(mode="json"))

    async def handle_send_message(self, session: ConnectionSession, data: Any) -> None:
        """Persist a message, then broadcast it to the whole room (sender included)."""
        if not await self._require_user(session):
            return
        room_id = session.room_id
        if room_id is None:
            await self.error(session, NOT_IN_ROOM)
            return
        try:
            payload = SendMessagePayload.model_validate(data)
        except PayloadError:
            await self.error(session, INVALID_PAYLOAD)
            return

        problem = validate_message_text(payload.text, get_config().chat.max_message_length)
        if problem:
            await self.error(session, problem)
            return

        try:
            async with get_database().session() as db:
                message = await MessageLog(db).append(
                    room_id, session.user.id, session.user.name, payload.text
                )
                # broadcast before closing the session so fan-out follows append order
                logger.info(
                    f"[WS] Message from {session.user.id}: {payload.text[:50]} "
                    f"-> {self.connections.group_size(room_id)} connections"
                )
                await self.connections.broadcast(room_id, "message:new", message.to_event())
        except Exception:
            logger.exception(f"[WS] message:send failed for {session.connection_id}")
            await self.error(session, SEND_FAILED)

    async def handle_list_messages(self, session: ConnectionSession, data: Any) -> None:
        """Reply with the recent history of the caller's current room."""
        if not await self._require_user(session):
            return
        room_id = session.room_id
        if room_id is None:
            await self.error(session, NOT_IN_ROOM)
            return
        try:
            async with get_database().session() as db:
                messages = await MessageLog(db).recent(room_id)
        except Exception:
            logger.exception(f"[WS] message:list failed for {session.connection_id}")
            await self.error(session, "Failed to list messages")
            return
        await self.connections.send(
            session, "message:list", [m.model_dump(mode="json") for m in messages]
        )


gateway = ChatGateway(manager)
