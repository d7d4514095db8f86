"""Tests for the room directory: slugs, validation and the /rooms API."""
import pytest

from roomchat.errors import Conflict, NotFound, ValidationError
from roomchat.rooms.service import RoomDirectory, slugify, validate_room


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.parametrize(
    "name,expected",
    [
        ("General", "general"),
        ("Café Olé!", "cafe-ole"),
        ("  --Hello   World--  ", "hello-world"),
        ("Rust & Go", "rust-go"),
        ("Ünïcödé 2024", "unicode-2024"),
        ("!!!", "room"),
        ("日本語", "room"),
    ],
)
def test_slugify(name, expected):
    assert slugify(name) == expected


def test_validate_room_collects_all_problems():
    errors = validate_room("A", 1)
    assert len(errors) == 2
    assert errors[0].startswith("name too short")
    assert errors[1] == "maxUsers minimum is 2"


def test_validate_room_upper_bounds():
    errors = validate_room("x" * 51, 101)
    assert errors == ["name too long: must be at most 50 characters", "maxUsers maximum is 100"]


def test_validate_room_accepts_bounds():
    assert validate_room("ab", 2) == []
    assert validate_room("x" * 50, 100) == []


class TestRoomsApi:
    def test_create_room(self, api_client, make_user):
        _, token = make_user()

        response = api_client.post("/rooms", json={"name": "General", "maxUsers": 10}, headers=bearer(token))

        assert response.status_code == 201
        room = response.json()
        assert set(room) == {"id", "name", "slug", "maxUsers", "createdAt", "updatedAt"}
        assert room["name"] == "General"
        assert room["slug"] == "general"
        assert room["maxUsers"] == 10

    def test_same_name_gets_distinct_slugs(self, api_client, make_user, make_room):
        _, token = make_user()

        first = make_room(token, name="Team Chat")
        second = make_room(token, name="Team Chat")
        third = make_room(token, name="team-chat")

        assert [first["slug"], second["slug"], third["slug"]] == ["team-chat", "team-chat-1", "team-chat-2"]

    def test_invalid_room_reports_both_problems(self, api_client, make_user):
        _, token = make_user()

        response = api_client.post("/rooms", json={"name": "A", "maxUsers": 1}, headers=bearer(token))

        assert response.status_code == 400
        messages = response.json()["message"]
        assert any("name too short" in m for m in messages)
        assert any("maxUsers minimum" in m for m in messages)

    def test_create_requires_auth(self, api_client):
        response = api_client.post("/rooms", json={"name": "General", "maxUsers": 10})
        assert response.status_code == 401

    def test_list_rooms_newest_first(self, api_client, make_user, make_room):
        _, token = make_user()
        make_room(token, name="first")
        make_room(token, name="second")
        make_room(token, name="third")

        response = api_client.get("/rooms", headers=bearer(token))

        assert response.status_code == 200
        assert [r["slug"] for r in response.json()] == ["third", "second", "first"]

    def test_list_requires_auth(self, api_client):
        assert api_client.get("/rooms").status_code == 401

    def test_get_room_by_slug(self, api_client, make_user, make_room):
        _, token = make_user()
        room = make_room(token, name="Lobby")

        response = api_client.get("/rooms/lobby", headers=bearer(token))

        assert response.status_code == 200
        assert response.json() == room

    def test_unknown_slug_is_404(self, api_client, make_user):
        _, token = make_user()

        response = api_client.get("/rooms/nope", headers=bearer(token))

        assert response.status_code == 404
        body = response.json()
        assert body["message"] == "Room not found"
        assert body["error"] == "Not Found"
        assert body["path"] == "/rooms/nope"


class TestRoomDirectory:
    @pytest.mark.asyncio
    async def test_create_and_resolve(self, db_session):
        directory = RoomDirectory(db_session)

        created = await directory.create_room("  Lobby  ", 5)

        assert created.name == "Lobby"
        assert (await directory.get_room_by_slug("lobby")).id == created.id
        assert (await directory.get_room_by_id(created.id)).slug == "lobby"

    @pytest.mark.asyncio
    async def test_validation_happens_before_persistence(self, db_session):
        directory = RoomDirectory(db_session)

        with pytest.raises(ValidationError) as exc_info:
            await directory.create_room("A", 1)

        assert len(exc_info.value.messages) == 2
        assert await directory.list_rooms() == []

    @pytest.mark.asyncio
    async def test_unknown_id_raises_not_found(self, db_session):
        with pytest.raises(NotFound):
            await RoomDirectory(db_session).get_room_by_id("missing")

    @pytest.mark.asyncio
    async def test_retries_when_slug_is_claimed_concurrently(self, db_session, monkeypatch):
        directory = RoomDirectory(db_session)
        await directory.create_room("general", 10)

        real_check = RoomDirectory._slug_taken
        calls = {"n": 0}

        async def stale_check(self, slug):
            # first lookup misses the row another writer already committed
            calls["n"] += 1
            if calls["n"] == 1:
                return False
            return await real_check(self, slug)

        monkeypatch.setattr(RoomDirectory, "_slug_taken", stale_check)

        room = await directory.create_room("general", 10)

        assert room.slug == "general-1"

    @pytest.mark.asyncio
    async def test_gives_up_after_configured_attempts(self, db_session, monkeypatch, settings):
        settings.rooms.slug_max_attempts = 3
        directory = RoomDirectory(db_session)
        await directory.create_room("general", 10)

        async def always_free(self, slug):
            return False

        monkeypatch.setattr(RoomDirectory, "_slug_taken", always_free)

        with pytest.raises(Conflict):
            await directory.create_room("general", 10)
