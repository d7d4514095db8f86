"""WebSocket connection manager for realtime chat rooms.

Owns two tables and is the only place they are mutated:

    sessions: connection_id -> ConnectionSession
    groups:   room_id -> set of connection_ids (the room's broadcast group)

Every frame sent to a client is an envelope ``{"event": name, "data": payload}``.

Thread Safety:
    Designed for a single asyncio event loop. NOT thread-safe.

Performance Notes:
    - Broadcasting uses asyncio.gather() for concurrent delivery
    - Connections that fail to receive are dropped from their group
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from roomchat.auth.schemas import UserPublic

logger = logging.getLogger(__name__)


@dataclass
class ConnectionSession:
    """Per-connection state, built once on connect.

    Attributes:
        connection_id: Server generated id of the websocket connection.
        websocket: The underlying transport.
        user: Identity verified at connect time, None when unauthenticated.
        room_id: Room whose broadcast group the connection belongs to.
        room_slug: Slug of that room, kept for logging.
    """
    connection_id: str
    websocket: WebSocket
    user: Optional[UserPublic] = None
    room_id: Optional[str] = None
    room_slug: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None


def envelope(event: str, data: Any) -> dict:
    return {"event": event, "data": data}


class ConnectionManager:
    """Tracks live connections and room broadcast groups.

    Note:
        A module level instance (``manager``) is shared by every websocket
        handler so all connections see the same groups.
    """

    def __init__(self) -> None:
        self.sessions: Dict[str, ConnectionSession] = {}
        self.groups: Dict[str, Set[str]] = {}

    async def connect(self, websocket: WebSocket) -> ConnectionSession:
        """Accept the websocket and register an unauthenticated session."""
        await websocket.accept()
        session = ConnectionSession(connection_id=str(uuid.uuid4()), websocket=websocket)
        self.sessions[session.connection_id] = session
        logger.info(f"[Manager] Connection {session.connection_id} accepted")
        return session

    def authenticate(self, session: ConnectionSession, user: UserPublic) -> None:
        session.user = user
        logger.info(f"[Manager] Connection {session.connection_id} authenticated as {user.id}")

    def join(self, session: ConnectionSession, room_id: str, room_slug: str) -> None:
        """Add the connection to a room's group. Leave the previous one first."""
        if session.room_id is not None and session.room_id != room_id:
            self.leave(session)
        self.groups.setdefault(room_id, set()).add(session.connection_id)
        session.room_id = room_id
        session.room_slug = room_slug
        logger.info(
            f"[Manager] {session.connection_id} joined room {room_slug} "
            f"({self.group_size(room_id)} connected)"
        )

    def leave(self, session: ConnectionSession) -> Optional[str]:
        """Remove the connection from its current group.

        Returns:
            The room id that was left, or None if the connection was in no room.
        """
        room_id = session.room_id
        if room_id is None:
            return None
        members = self.groups.get(room_id)
        if members is not None:
            members.discard(session.connection_id)
            if not members:
                del self.groups[room_id]
        session.room_id = None
        session.room_slug = None
        return room_id

    def disconnect(self, session: ConnectionSession) -> Optional[str]:
        """Forget the connection entirely. Returns the room it was in, if any."""
        room_id = self.leave(session)
        self.sessions.pop(session.connection_id, None)
        logger.info(f"[Manager] Connection {session.connection_id} removed")
        return room_id

    def members(self, room_id: str) -> List[ConnectionSession]:
        return [
            self.sessions[cid]
            for cid in self.groups.get(room_id, ())
            if cid in self.sessions
        ]

    def group_size(self, room_id: str) -> int:
        return len(self.groups.get(room_id, ()))

    async def send(self, session: ConnectionSession, event: str, data: Any) -> bool:
        """Send one event to a single connection."""
        return await self._safe_send(session.websocket, envelope(event, data))

    async def broadcast(self, room_id: str, event: str, data: Any) -> None:
        """Send an event to every member of a room concurrently.

        Members whose send fails are removed from the group.
        """
        sessions = self.members(room_id)
        if not sessions:
            return

        message = envelope(event, data)
        results = await asyncio.gather(
            *[self._safe_send(s.websocket, message) for s in sessions],
            return_exceptions=True
        )

        failed = [s for s, ok in zip(sessions, results) if ok is not True]
        self._cleanup_connections(room_id, failed)

    async def _safe_send(self, websocket: WebSocket, message: dict) -> bool:
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    def _cleanup_connections(self, room_id: str, failed: List[ConnectionSession]) -> None:
        for session in failed:
            if session.room_id == room_id:
                self.leave(session)
                logger.debug(f"Removed dead connection {session.connection_id} from room {room_id}")

    def clear(self) -> None:
        """Drop all state (used by tests)."""
        self.sessions.clear()
        self.groups.clear()


manager = ConnectionManager()
