"""WebSocket test configuration.

Creates a minimal FastAPI test app that mounts the WebSocket router plus the
auth and task routers (so tests can trigger fan-out over HTTP), with
in-memory backends on ``app.state``.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from taskflow.config import get_settings
from taskflow.routers import auth, tasks
from taskflow.routers.websocket import router as ws_router
from taskflow.services import auth_service
from taskflow.services.connection_manager import ConnectionManager
from taskflow.services.dispatcher import Dispatcher
from taskflow.services.fanout import FanoutRunner
from taskflow.services.memory_storage import MemoryStorage
from taskflow.services.session_cookie import sign_session_id
from taskflow.services.session_store import MemorySessionStore
from tests.factories import make_registration


def create_test_app() -> FastAPI:
    """Build a minimal FastAPI app with the WebSocket, auth and task routers."""
    test_app = FastAPI()
    test_app.include_router(auth.router, prefix="/api")
    test_app.include_router(tasks.router, prefix="/api/tasks")
    test_app.include_router(ws_router)

    manager = ConnectionManager()
    test_app.state.storage = MemoryStorage()
    test_app.state.session_store = MemorySessionStore()
    test_app.state.connection_manager = manager
    test_app.state.dispatcher = Dispatcher(manager)
    test_app.state.fanout = FanoutRunner(timeout=5.0)
    return test_app


@pytest.fixture
def ws_app():
    return create_test_app()


@pytest.fixture
def client(ws_app):
    """Starlette TestClient; one event loop for every request and socket."""
    with TestClient(ws_app) as test_client:
        yield test_client


@pytest.fixture
def create_user(ws_app, client):
    """Register a user through the service layer, return its record."""

    def _create(**overrides) -> dict:
        data = make_registration(**overrides)
        return client.portal.call(
            lambda: auth_service.register_user(ws_app.state.storage, data, rounds=4)
        )

    return _create


@pytest.fixture
def cookie_for(ws_app, client):
    """Start a session for a user id, return the ``Cookie`` header value."""

    def _cookie(user_id: int) -> str:
        settings = get_settings()
        session_id = client.portal.call(
            lambda: auth_service.create_login_session(ws_app.state.session_store, user_id)
        )
        return f"{settings.session_cookie_name}={sign_session_id(session_id, settings.session_secret)}"

    return _cookie
