"""Room directory: creation with unique slugs, lookup and listing.

Slugs are derived from the room name (see :func:`slugify`) and made unique by
appending ``-1``, ``-2``, ... The existence check alone is not race-safe, so
the unique index on ``rooms.slug`` is the final arbiter: when an insert loses
to a concurrent creation the whole candidate search is repeated.
"""
import logging
import re
import unicodedata
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.config import get_config
from roomchat.errors import Conflict, NotFound, ValidationError
from roomchat.models import Room

from .schemas import RoomOut

logger = logging.getLogger(__name__)

NAME_MIN, NAME_MAX = 2, 50
MAX_USERS_MIN, MAX_USERS_MAX = 2, 100
FALLBACK_SLUG = "room"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lower-case, strip diacritics, collapse non-alphanumeric runs to ``-``.

    >>> slugify("Café Olé!")
    'cafe-ole'
    """
    decomposed = unicodedata.normalize("NFKD", name.lower())
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _NON_ALNUM.sub("-", ascii_only).strip("-")
    return slug or FALLBACK_SLUG


def validate_room(name: str, max_users: int) -> List[str]:
    errors = []
    name = (name or "").strip()
    if len(name) < NAME_MIN:
        errors.append(f"name too short: must be at least {NAME_MIN} characters")
    elif len(name) > NAME_MAX:
        errors.append(f"name too long: must be at most {NAME_MAX} characters")
    if max_users < MAX_USERS_MIN:
        errors.append(f"maxUsers minimum is {MAX_USERS_MIN}")
    elif max_users > MAX_USERS_MAX:
        errors.append(f"maxUsers maximum is {MAX_USERS_MAX}")
    return errors


class RoomDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _slug_taken(self, slug: str) -> bool:
        result = await self.db.execute(select(Room.id).where(Room.slug == slug))
        return result.first() is not None

    async def _unique_slug(self, base_slug: str) -> str:
        slug = base_slug
        counter = 1
        while await self._slug_taken(slug):
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    async def create_room(self, name: str, max_users: int) -> RoomOut:
        """Validate, pick a unique slug and persist a new room.

        Raises:
            ValidationError: name or max_users out of range (all problems listed).
            Conflict: slug could not be claimed after the configured retries.
        """
        errors = validate_room(name, max_users)
        if errors:
            raise ValidationError(errors)

        name = name.strip()
        base_slug = slugify(name)
        attempts = get_config().rooms.slug_max_attempts

        for attempt in range(1, attempts + 1):
            slug = await self._unique_slug(base_slug)
            room = Room(name=name, slug=slug, max_users=max_users)
            self.db.add(room)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(
                    "Slug %r claimed concurrently, retrying (attempt %d/%d)",
                    slug, attempt, attempts,
                )
                continue
            await self.db.refresh(room)
            logger.info("Room created: %s (%s, slug=%s)", room.name, room.id, room.slug)
            return RoomOut.from_model(room)

        raise Conflict(f"Could not allocate a unique slug for room name {name!r}")

    async def _get(self, *criteria) -> Optional[Room]:
        result = await self.db.execute(select(Room).where(*criteria))
        return result.scalar_one_or_none()

    async def get_room_by_slug(self, slug: str) -> RoomOut:
        room = await self._get(Room.slug == slug)
        if room is None:
            raise NotFound("Room not found")
        return RoomOut.from_model(room)

    async def get_room_by_id(self, room_id: str) -> RoomOut:
        room = await self._get(Room.id == room_id)
        if room is None:
            raise NotFound("Room not found")
        return RoomOut.from_model(room)

    async def list_rooms(self) -> List[RoomOut]:
        """All rooms, newest first."""
        result = await self.db.execute(select(Room).order_by(Room.created_at.desc()))
        return [RoomOut.from_model(room) for room in result.scalars().all()]
