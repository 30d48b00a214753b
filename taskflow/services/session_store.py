"""Session stores shared by the HTTP layer and the WebSocket handshake.

A session maps an opaque id (UUID) to a small JSON payload.  The payload key
``user_id`` marks an authenticated session; a session without it is anonymous
and never grants access.

Provides:
- ``SqliteSessionStore``: sessions in the ``sessions`` table.
- ``MemorySessionStore``: process-local fallback paired with ``MemoryStorage``.

Both expose ``create(data)``, ``get(session_id)``, ``set(session_id, data)``
and ``destroy(session_id)``.  ``get`` refreshes the expiry (sliding window)
and returns ``None`` for unknown or expired sessions.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import aiosqlite

DEFAULT_DURATION_DAYS = 14


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqliteSessionStore:
    """Session store over the ``sessions`` table."""

    def __init__(self, db: aiosqlite.Connection, *, duration_days: int = DEFAULT_DURATION_DAYS) -> None:
        self._db = db
        self._duration = timedelta(days=duration_days)

    async def create(self, data: dict) -> str:
        """Create a new session holding *data*, return its id."""
        session_id = str(uuid4())
        await self.set(session_id, data)
        return session_id

    async def set(self, session_id: str, data: dict) -> None:
        now = _utcnow()
        await self._db.execute(
            "INSERT INTO sessions (id, data, created_at, expires_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET data = excluded.data, expires_at = excluded.expires_at",
            (session_id, json.dumps(data), now.isoformat(), (now + self._duration).isoformat()),
        )
        await self._db.commit()

    async def get(self, session_id: str) -> dict | None:
        """Look up *session_id*, check it is not expired, refresh expiry."""
        if not session_id:
            return None

        cursor = await self._db.execute(
            "SELECT data, expires_at FROM sessions WHERE id = ?", (session_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        now = _utcnow()
        if datetime.fromisoformat(row["expires_at"]) <= now:
            return None

        await self._db.execute(
            "UPDATE sessions SET expires_at = ? WHERE id = ?",
            ((now + self._duration).isoformat(), session_id),
        )
        await self._db.commit()
        return json.loads(row["data"])

    async def destroy(self, session_id: str) -> None:
        """Delete a session row. No-op if the session does not exist."""
        await self._db.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        await self._db.commit()

    async def prune_expired(self) -> int:
        """Delete every expired session, return how many were removed."""
        cursor = await self._db.execute(
            "DELETE FROM sessions WHERE expires_at <= ?", (_utcnow().isoformat(),)
        )
        await self._db.commit()
        return cursor.rowcount


class MemorySessionStore:
    """Dict-backed session store; sessions vanish on restart."""

    def __init__(self, *, duration_days: int = DEFAULT_DURATION_DAYS) -> None:
        self._sessions: dict[str, tuple[dict, datetime]] = {}
        self._duration = timedelta(days=duration_days)

    async def create(self, data: dict) -> str:
        session_id = str(uuid4())
        await self.set(session_id, data)
        return session_id

    async def set(self, session_id: str, data: dict) -> None:
        self._sessions[session_id] = (json.loads(json.dumps(data)), _utcnow() + self._duration)

    async def get(self, session_id: str) -> dict | None:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        data, expires_at = entry
        now = _utcnow()
        if expires_at <= now:
            del self._sessions[session_id]
            return None
        self._sessions[session_id] = (data, now + self._duration)
        return dict(data)

    async def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def prune_expired(self) -> int:
        now = _utcnow()
        expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)
