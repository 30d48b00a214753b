"""Shared pytest fixtures for backend tests.

Provides:
- ``memory_storage`` / ``session_store``: fresh in-memory backends
- ``sqlite_db``: in-memory SQLite with the full schema
- ``manager`` / ``dispatcher``: an empty connection registry and its dispatcher
- ``make_ws``: factory for open mock WebSockets
- ``alice`` / ``bob`` / ``carol``: users created in ``memory_storage``
"""

from __future__ import annotations

import os

# Set required env vars before any taskflow module reads Settings.
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("SEED_ADMIN", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from taskflow.config import get_settings  # noqa: E402

get_settings.cache_clear()

from unittest.mock import AsyncMock  # noqa: E402

import aiosqlite  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from starlette.websockets import WebSocketState  # noqa: E402

from taskflow.database import init_db_schema  # noqa: E402
from taskflow.services.connection_manager import ConnectionManager  # noqa: E402
from taskflow.services.dispatcher import Dispatcher  # noqa: E402
from taskflow.services.memory_storage import MemoryStorage  # noqa: E402
from taskflow.services.session_store import MemorySessionStore  # noqa: E402

from .factories import make_user  # noqa: E402


def mock_websocket() -> AsyncMock:
    """Create an open mock WebSocket with an async ``send_text`` method."""
    ws = AsyncMock()
    ws.client_state = WebSocketState.CONNECTED
    ws.application_state = WebSocketState.CONNECTED
    ws.send_text = AsyncMock()
    ws.close = AsyncMock()
    return ws


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def session_store():
    return MemorySessionStore(duration_days=14)


@pytest_asyncio.fixture
async def sqlite_db():
    """In-memory SQLite database with the full TaskFlow schema."""
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await init_db_schema(conn)
    yield conn
    await conn.close()


@pytest.fixture
def manager():
    return ConnectionManager()


@pytest.fixture
def dispatcher(manager):
    return Dispatcher(manager)


@pytest.fixture
def make_ws():
    return mock_websocket


@pytest_asyncio.fixture
async def alice(memory_storage):
    return await memory_storage.create_user(make_user(username="alice", full_name="Alice"))


@pytest_asyncio.fixture
async def bob(memory_storage):
    return await memory_storage.create_user(make_user(username="bob", full_name="Bob"))


@pytest_asyncio.fixture
async def carol(memory_storage):
    return await memory_storage.create_user(make_user(username="carol", full_name="Carol"))
