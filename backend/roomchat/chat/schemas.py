"""Pydantic models for chat messages and realtime event payloads."""
from typing import List

from pydantic import BaseModel, Field

from roomchat.models import Message
from roomchat.rooms.schemas import RoomOut
from roomchat.schemas import UtcDateTime


class MessageOut(BaseModel):
    """A persisted chat message as delivered to clients."""
    id: str
    text: str
    userId: str
    userName: str
    roomId: str
    createdAt: UtcDateTime

    @classmethod
    def from_model(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            text=message.text,
            userId=message.user_id,
            userName=message.user_name,
            roomId=message.room_id,
            createdAt=message.created_at,
        )

    def to_event(self) -> dict:
        """Payload of the ``message:new`` event."""
        return self.model_dump(mode="json", include={"id", "text", "userId", "userName", "createdAt"})


# =============================================================================
# Client -> server payloads
# =============================================================================


class JoinRoomPayload(BaseModel):
    roomSlug: str = Field(..., min_length=1)


class SendMessagePayload(BaseModel):
    text: str


# =============================================================================
# Server -> client payloads
# =============================================================================


class PresenceEvent(BaseModel):
    """Payload of ``user:joined`` and ``user:left``."""
    userId: str
    userName: str
    timestamp: UtcDateTime


class RoomJoined(BaseModel):
    """Reply to the joining client: room metadata plus ordered history."""
    room: RoomOut
    messages: List[MessageOut]
