"""Message log: append-only persistence of room messages."""
import logging
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.config import get_config
from roomchat.models import Message

from .schemas import MessageOut

logger = logging.getLogger(__name__)


class MessageLog:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, room_id: str, user_id: str, user_name: str, text: str) -> MessageOut:
        """Persist a message. The sender's name is copied onto the row."""
        message = Message(room_id=room_id, user_id=user_id, user_name=user_name, text=text)
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        logger.debug("Message %s appended to room %s by %s", message.id, room_id, user_id)
        return MessageOut.from_model(message)

    async def recent(self, room_id: str, limit: Optional[int] = None) -> List[MessageOut]:
        """Return the newest *limit* messages of a room, oldest first.

        ``seq`` breaks ties between rows written within the same clock tick so
        the order always matches commit order.
        """
        if limit is None:
            limit = get_config().chat.history_limit
        stmt = (
            select(Message)
            .where(Message.room_id == room_id)
            .order_by(desc(Message.created_at), desc(Message.seq))
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        rows = result.scalars().all()
        return [MessageOut.from_model(m) for m in reversed(rows)]
