"""Database connection management and schema initialisation.

Provides:
- ``init_db_schema(conn)``: Enable PRAGMAs, create all tables and indexes.
- ``DatabasePool``: One write connection plus a small pool of readers.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

DEFAULT_READERS = 5
BUSY_TIMEOUT_MS = 5000


# ---------------------------------------------------------------------------
# Schema SQL
# ---------------------------------------------------------------------------

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS users (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    username        TEXT NOT NULL UNIQUE,
    password        TEXT NOT NULL,
    email           TEXT NOT NULL,
    full_name       TEXT NOT NULL,
    role            TEXT NOT NULL DEFAULT 'employee' CHECK(role IN ('admin', 'manager', 'employee')),
    avatar          TEXT
);

CREATE TABLE IF NOT EXISTS sessions (
    id              TEXT PRIMARY KEY,
    data            TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL,
    expires_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    title           TEXT NOT NULL,
    description     TEXT,
    status          TEXT NOT NULL DEFAULT 'todo' CHECK(status IN ('todo', 'inProgress', 'completed')),
    priority        TEXT NOT NULL DEFAULT 'medium' CHECK(priority IN ('low', 'medium', 'high')),
    due_date        TEXT,
    created_at      TEXT NOT NULL,
    estimated_hours REAL,
    created_by_id   INTEGER NOT NULL REFERENCES users(id)
);

CREATE TABLE IF NOT EXISTS task_assignees (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id         INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    user_id         INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    UNIQUE(task_id, user_id)
);

CREATE TABLE IF NOT EXISTS comments (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id         INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    user_id         INTEGER NOT NULL REFERENCES users(id),
    content         TEXT NOT NULL,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS attachments (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id         INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    user_id         INTEGER NOT NULL REFERENCES users(id),
    file_name       TEXT NOT NULL,
    file_type       TEXT NOT NULL,
    file_size       INTEGER NOT NULL,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS time_entries (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id         INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    user_id         INTEGER NOT NULL REFERENCES users(id),
    start_time      TEXT NOT NULL,
    end_time        TEXT,
    duration        INTEGER,
    notes           TEXT
);

CREATE TABLE IF NOT EXISTS notifications (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title           TEXT NOT NULL,
    message         TEXT NOT NULL,
    type            TEXT NOT NULL,
    is_read         INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    related_id      INTEGER
);

CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at);
CREATE INDEX IF NOT EXISTS idx_task_assignees_task_id ON task_assignees(task_id);
CREATE INDEX IF NOT EXISTS idx_comments_task_id ON comments(task_id, created_at);
CREATE INDEX IF NOT EXISTS idx_attachments_task_id ON attachments(task_id);
CREATE INDEX IF NOT EXISTS idx_time_entries_task_id ON time_entries(task_id, start_time);
CREATE INDEX IF NOT EXISTS idx_time_entries_user_id ON time_entries(user_id, start_time);
CREATE INDEX IF NOT EXISTS idx_notifications_user_id ON notifications(user_id, created_at);
"""


# ---------------------------------------------------------------------------
# Connection Pool
# ---------------------------------------------------------------------------


async def _connect(db_path: str, *, read_only: bool = False) -> aiosqlite.Connection:
    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    if read_only:
        await conn.execute("PRAGMA query_only=ON")
    return conn


class DatabasePool:
    """One writer plus a fixed set of WAL readers over the same SQLite file.

    ``open()`` creates the writer first (which also applies the schema), then
    the readers.  If any connection fails to open, everything opened so far is
    closed again and the error propagates.
    """

    def __init__(self, db_path: str, readers: int = DEFAULT_READERS):
        if readers < 1:
            raise ValueError("readers must be at least 1")
        self.db_path = db_path
        self.readers = readers
        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=readers)
        self._writer: aiosqlite.Connection | None = None

    @property
    def writer(self) -> aiosqlite.Connection:
        if self._writer is None:
            raise RuntimeError("DatabasePool is not open")
        return self._writer

    async def open(self) -> None:
        try:
            self._writer = await _connect(self.db_path)
            await init_db_schema(self._writer)
            for _ in range(self.readers):
                await self._idle.put(await _connect(self.db_path, read_only=True))
        except Exception:
            await self.close()
            raise

    async def close(self) -> None:
        if self._writer is not None:
            await self._writer.close()
            self._writer = None
        while not self._idle.empty():
            await self._idle.get_nowait().close()

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a read connection; waits while all readers are busy."""
        conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def init_db_schema(conn: aiosqlite.Connection) -> None:
    """Initialise the database: enable PRAGMAs, create tables and indexes.

    The caller is responsible for opening and closing the connection.
    """
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.executescript(SCHEMA_SQL)
    await conn.commit()


def sqlite_path(database_url: str) -> str:
    """Strip the ``sqlite:///`` scheme from a database URL."""
    return database_url.replace("sqlite:///", "")
