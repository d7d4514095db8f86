"""Pydantic schemas for the room directory."""
from pydantic import BaseModel

from roomchat.models import Room
from roomchat.schemas import UtcDateTime


class RoomCreate(BaseModel):
    """Request body for POST /rooms.

    Range checks live in RoomDirectory.create_room so that all violations
    come back together.
    """
    name: str
    maxUsers: int


class RoomOut(BaseModel):
    """Room record returned by the API and in the ``room:join`` reply."""
    id: str
    name: str
    slug: str
    maxUsers: int
    createdAt: UtcDateTime
    updatedAt: UtcDateTime

    @classmethod
    def from_model(cls, room: Room) -> "RoomOut":
        return cls(
            id=room.id,
            name=room.name,
            slug=room.slug,
            maxUsers=room.max_users,
            createdAt=room.created_at,
            updatedAt=room.updated_at,
        )
