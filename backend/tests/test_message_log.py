"""Tests for the persisted message log."""
from datetime import datetime, timezone

import pytest

from roomchat.chat.service import MessageLog
from roomchat.models import Message, Room, User


async def seed(db, room_name="general"):
    user = User(name="Alice", email=f"alice-{room_name}@example.com", password_hash="x")
    room = Room(name=room_name, slug=room_name, max_users=10)
    db.add_all([user, room])
    await db.commit()
    return user, room


@pytest.mark.asyncio
async def test_append_returns_stored_message(db_session):
    user, room = await seed(db_session)

    message = await MessageLog(db_session).append(room.id, user.id, user.name, "  hello  ")

    assert message.text == "  hello  "
    assert message.userId == user.id
    assert message.userName == "Alice"
    assert message.roomId == room.id
    assert message.createdAt.tzinfo is not None


@pytest.mark.asyncio
async def test_recent_is_oldest_first_in_append_order(db_session):
    user, room = await seed(db_session)
    log = MessageLog(db_session)

    for i in range(5):
        await log.append(room.id, user.id, user.name, f"m{i}")

    messages = await log.recent(room.id)

    assert [m.text for m in messages] == ["m0", "m1", "m2", "m3", "m4"]
    stamps = [m.createdAt for m in messages]
    assert stamps == sorted(stamps)


@pytest.mark.asyncio
async def test_recent_keeps_only_the_newest(db_session):
    user, room = await seed(db_session)
    log = MessageLog(db_session)
    for i in range(8):
        await log.append(room.id, user.id, user.name, f"m{i}")

    messages = await log.recent(room.id, limit=3)

    assert [m.text for m in messages] == ["m5", "m6", "m7"]


@pytest.mark.asyncio
async def test_recent_defaults_to_configured_history_limit(db_session, settings):
    settings.chat.history_limit = 2
    user, room = await seed(db_session)
    log = MessageLog(db_session)
    for i in range(4):
        await log.append(room.id, user.id, user.name, f"m{i}")

    assert [m.text for m in await log.recent(room.id)] == ["m2", "m3"]


@pytest.mark.asyncio
async def test_equal_timestamps_fall_back_to_insert_order(db_session):
    user, room = await seed(db_session)
    same_instant = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    for text in ("first", "second", "third"):
        db_session.add(Message(
            room_id=room.id, user_id=user.id, user_name=user.name,
            text=text, created_at=same_instant,
        ))
        await db_session.flush()
    await db_session.commit()

    messages = await MessageLog(db_session).recent(room.id, limit=2)

    assert [m.text for m in messages] == ["second", "third"]


@pytest.mark.asyncio
async def test_recent_is_scoped_to_room(db_session):
    user, general = await seed(db_session)
    _, random = await seed(db_session, room_name="random")
    log = MessageLog(db_session)

    await log.append(general.id, user.id, user.name, "in general")
    await log.append(random.id, user.id, user.name, "in random")

    assert [m.text for m in await log.recent(general.id)] == ["in general"]
    assert await log.recent("no-such-room") == []
