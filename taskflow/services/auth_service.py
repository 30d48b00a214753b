"""Authentication service: password hashing, registration, login, sessions.

Provides:
- ``hash_password(password)`` / ``verify_password(password, hashed)``: bcrypt.
  Both are CPU-bound; the async helpers below run them in the default executor.
- ``register_user(storage, data)``: Creates a user with a hashed password.
- ``authenticate(storage, username, password)``: Returns the user or raises.
- ``create_login_session(session_store, user_id)``: Starts a session.
- ``resolve_session_user(storage, session_store, cookie_value, secret)``:
  Cookie value -> user dict, shared with the HTTP dependency.
- ``ensure_admin_user(storage, password)``: Seeds the default ``admin`` account.
"""

from __future__ import annotations

import asyncio
import functools
import logging

import bcrypt

from taskflow.exceptions import AuthenticationError
from taskflow.services.session_cookie import unsign_session_cookie

logger = logging.getLogger(__name__)

ADMIN_USERNAME = "admin"
BCRYPT_ROUNDS = 12


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def register_user(storage, data: dict, *, rounds: int = BCRYPT_ROUNDS) -> dict:
    """Create a user from *data* (``password`` in plain text).

    Raises ``ConflictError`` (from storage) if the username is taken.
    """
    record = dict(data)
    loop = asyncio.get_running_loop()
    record["password"] = await loop.run_in_executor(
        None, functools.partial(hash_password, data["password"], rounds=rounds)
    )
    user = await storage.create_user(record)
    logger.info("Registered user %s (%s)", user["id"], user["username"])
    return user


async def authenticate(storage, username: str, password: str) -> dict:
    user = await storage.get_user_by_username(username)
    if user is None:
        raise AuthenticationError("Invalid username or password")
    loop = asyncio.get_running_loop()
    if not await loop.run_in_executor(None, verify_password, password, user["password"]):
        raise AuthenticationError("Invalid username or password")
    return user


async def ensure_admin_user(storage, password: str, *, rounds: int = BCRYPT_ROUNDS) -> dict:
    """Create the default ``admin`` account if it does not exist yet."""
    existing = await storage.get_user_by_username(ADMIN_USERNAME)
    if existing is not None:
        return existing
    logger.info("Creating default admin user")
    return await register_user(
        storage,
        {
            "username": ADMIN_USERNAME,
            "password": password,
            "email": "admin@taskflow.local",
            "full_name": "Admin User",
            "role": "admin",
            "avatar": None,
        },
        rounds=rounds,
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


async def create_login_session(session_store, user_id: int) -> str:
    """Create an authenticated session for *user_id*, return its id."""
    return await session_store.create({"user_id": user_id})


async def resolve_session_user(storage, session_store, cookie_value: str | None, secret: str) -> dict | None:
    """Resolve a session cookie value to a user dict, or ``None``.

    Uses the same cookie codec as the WebSocket handshake.
    """
    session_id = unsign_session_cookie(cookie_value, secret)
    if session_id is None:
        return None
    session = await session_store.get(session_id)
    if not session or session.get("user_id") is None:
        return None
    return await storage.get_user(session["user_id"])
