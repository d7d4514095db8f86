"""Shared test fixtures and configuration for backend tests.

Every test gets its own SQLite file database under ``tmp_path`` and cheap
bcrypt hashing. The app's lifespan builds the engine from the injected
settings, so all database work runs on the TestClient's event loop.
"""
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from roomchat.chat.manager import manager
from roomchat.config import AppSettings, AuthSettings, DatabaseSettings, reset_config, set_config
from roomchat.database import Database
from roomchat.main import app


@pytest.fixture
def settings(tmp_path):
    config = AppSettings(
        auth=AuthSettings(bcrypt_rounds=4),
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
    )
    set_config(config)
    yield config
    reset_config()


@pytest.fixture
def api_client(settings):
    """Provide a TestClient with the lifespan (and so the database) running."""
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def cleanup_connections():
    """Forget any websocket sessions left over from a test."""
    yield
    manager.clear()


@pytest.fixture
def make_user(api_client):
    """Factory: register + log in a user, return (user, token)."""

    def _make(name="Alice", email=None, password="secret123"):
        email = email or f"{name.lower()}@example.com"
        created = api_client.post(
            "/auth/register", json={"name": name, "email": email, "password": password}
        )
        assert created.status_code == 201, created.text
        login = api_client.post("/auth/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        return created.json(), login.json()["access_token"]

    return _make


@pytest.fixture
def make_room(api_client):
    """Factory: create a room as the given token's user, return the room JSON."""

    def _make(token, name="general", max_users=10):
        response = api_client.post(
            "/rooms",
            json={"name": name, "maxUsers": max_users},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest_asyncio.fixture
async def db_session(settings):
    """A session on a fresh schema, for service-level tests without HTTP."""
    database = Database(settings.database_url)
    await database.create_all()
    async with database.session() as session:
        yield session
    await database.dispose()
