"""Room management REST API router.

Endpoints (all require a bearer token):
    POST /rooms         - Create a room
    GET  /rooms         - List rooms, newest first
    GET  /rooms/{slug}  - Get a room by slug
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.auth.router import get_current_user
from roomchat.auth.schemas import UserPublic
from roomchat.database import get_db

from .schemas import RoomCreate, RoomOut
from .service import RoomDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.post("", response_model=RoomOut, status_code=201)
async def create_room(
    body: RoomCreate,
    user: UserPublic = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> RoomOut:
    """Create a room.

    Args:
        body: Room name (2-50 chars) and advisory capacity (2-100).

    Returns:
        The created room with its generated slug (201 Created).
    """
    logger.info("[rooms] %s creating room %r (maxUsers=%s)", user.email, body.name, body.maxUsers)
    return await RoomDirectory(db).create_room(body.name, body.maxUsers)


@router.get("", response_model=List[RoomOut])
async def list_rooms(
    user: UserPublic = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[RoomOut]:
    rooms = await RoomDirectory(db).list_rooms()
    logger.debug("[rooms] %d rooms listed for %s", len(rooms), user.email)
    return rooms


@router.get("/{slug}", response_model=RoomOut)
async def get_room(
    slug: str,
    user: UserPublic = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> RoomOut:
    return await RoomDirectory(db).get_room_by_slug(slug)
