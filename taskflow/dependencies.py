"""FastAPI dependency injection functions.

Provides:
- ``get_storage(request)``: The active storage backend (sqlite or memory).
- ``get_session_store(request)``: The active session store.
- ``get_dispatcher(request)``: The WebSocket fan-out dispatcher.
- ``get_task_service(request)``: A ``TaskService`` bound to the app's backends.
- ``get_current_user(request, storage, session_store)``: Validates the session
  cookie, returns the user dict.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from taskflow.config import get_settings
from taskflow.services import auth_service
from taskflow.services.dispatcher import Dispatcher
from taskflow.services.task_service import TaskService


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


def get_storage(request: Request):
    """Return the storage backend opened by the lifespan (or set by tests)."""
    return request.app.state.storage


def get_session_store(request: Request):
    return request.app.state.session_store


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_task_service(request: Request) -> TaskService:
    """Build a ``TaskService`` over the app's storage, dispatcher and fan-out runner."""
    state = request.app.state
    return TaskService(state.storage, state.dispatcher, getattr(state, "fanout", None))


# ---------------------------------------------------------------------------
# get_current_user
# ---------------------------------------------------------------------------


async def get_current_user(
    request: Request,
    storage=Depends(get_storage),
    session_store=Depends(get_session_store),
) -> dict:
    """Extract the session cookie, resolve it to a user, return the user dict.

    Raises ``HTTPException(401)`` if the cookie is missing, tampered with, or
    the session is expired or anonymous.
    """
    settings = get_settings()
    cookie_value = request.cookies.get(settings.session_cookie_name)
    if not cookie_value:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = await auth_service.resolve_session_user(
        storage, session_store, cookie_value, settings.session_secret
    )
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return user
