"""Fixtures for REST API endpoint tests.

Points ``taskflow.main.app`` at fresh in-memory backends (the lifespan does
not run under ``ASGITransport``) and provides authenticated HTTP clients.
"""

from __future__ import annotations

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from taskflow.config import get_settings
from taskflow.services import auth_service
from taskflow.services.connection_manager import Connection, ConnectionManager
from taskflow.services.dispatcher import Dispatcher
from taskflow.services.fanout import FanoutRunner
from taskflow.services.memory_storage import MemoryStorage
from taskflow.services.session_cookie import sign_session_id
from taskflow.services.session_store import MemorySessionStore
from tests.conftest import mock_websocket
from tests.factories import make_registration


# ---------------------------------------------------------------------------
# Response assertion helpers
# ---------------------------------------------------------------------------


def assert_error_response(response, status_code, error_substring=None):
    assert response.status_code == status_code
    body = response.json()
    assert "error" in body
    if error_substring:
        assert error_substring in body["error"]


def assert_success_response(response, status_code=200):
    assert response.status_code == status_code
    return response.json()


def received(connection: Connection) -> list[dict]:
    """Decode every event sent to a mock connection."""
    return [json.loads(call.args[0]) for call in connection.websocket.send_text.await_args_list]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def app():
    from taskflow.main import app as application

    manager = ConnectionManager()
    application.state.storage = MemoryStorage()
    application.state.session_store = MemorySessionStore()
    application.state.connection_manager = manager
    application.state.dispatcher = Dispatcher(manager)
    application.state.fanout = FanoutRunner(timeout=5.0)
    yield application
    await application.state.fanout.shutdown()


@pytest.fixture
def drain(app):
    """Await all background fan-out scheduled by previous requests."""
    return app.state.fanout.drain


@pytest.fixture
def connect(app):
    """Register an open mock socket for a user id, return its Connection."""

    def _connect(user_id: int) -> Connection:
        connection = Connection(user_id=user_id, websocket=mock_websocket())
        app.state.connection_manager.register(connection)
        return connection

    return _connect


async def _create_user(app, **overrides) -> dict:
    return await auth_service.register_user(
        app.state.storage, make_registration(**overrides), rounds=4
    )


async def _session_cookie(app, user_id: int) -> dict:
    settings = get_settings()
    session_id = await auth_service.create_login_session(app.state.session_store, user_id)
    return {settings.session_cookie_name: sign_session_id(session_id, settings.session_secret)}


@pytest_asyncio.fixture
async def test_user(app):
    return await _create_user(app, username="alice", full_name="Alice")


@pytest_asyncio.fixture
async def other_user(app):
    return await _create_user(app, username="bob", full_name="Bob")


@pytest_asyncio.fixture
async def anon_client(app):
    """httpx.AsyncClient without a session cookie."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def authed_client(app, test_user):
    """httpx.AsyncClient with a session cookie for ``test_user``."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=await _session_cookie(app, test_user["id"]),
    ) as client:
        yield client


@pytest_asyncio.fixture
async def other_user_client(app, other_user):
    """A second authenticated client belonging to ``other_user``."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=await _session_cookie(app, other_user["id"]),
    ) as client:
        yield client
