"""SQLite-backed persistence adapter.

Provides ``SqliteStorage``: CRUD for users, tasks, task assignees, comments,
attachments, time entries and notifications.  Records are returned as plain
dicts with snake_case keys and ISO 8601 timestamps; ``None`` means "not found".

``MemoryStorage`` in ``memory_storage.py`` exposes the same coroutine API and
is used when the database cannot be opened.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import aiosqlite

from taskflow.database import DatabasePool
from taskflow.exceptions import ConflictError

# Columns a task update may touch; anything else in the changes dict is ignored.
TASK_UPDATE_COLUMNS = (
    "title",
    "description",
    "status",
    "priority",
    "due_date",
    "estimated_hours",
)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat()


def _notification_from_row(row: aiosqlite.Row) -> dict:
    notification = dict(row)
    notification["is_read"] = bool(notification["is_read"])
    return notification


class SqliteStorage:
    """Persistence adapter over an aiosqlite write connection and optional read pool.

    Writes always go through the dedicated write connection.  Reads use the
    pool when one is given, otherwise the write connection (tests pass a single
    in-memory connection).
    """

    name = "sqlite"

    def __init__(self, db: aiosqlite.Connection, pool: DatabasePool | None = None) -> None:
        self._db = db
        self._pool = pool

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[aiosqlite.Connection]:
        if self._pool is None:
            yield self._db
            return
        async with self._pool.reader() as conn:
            yield conn

    async def _fetch_one(self, sql: str, params: tuple = ()) -> dict | None:
        async with self._read() as conn:
            cursor = await conn.execute(sql, params)
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def _fetch_all(self, sql: str, params: tuple = ()) -> list[dict]:
        async with self._read() as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def _insert(self, sql: str, params: tuple) -> int:
        cursor = await self._db.execute(sql, params)
        await self._db.commit()
        return cursor.lastrowid

    async def ping(self) -> bool:
        try:
            await self._db.execute("SELECT 1")
        except Exception:
            return False
        return True

    # -- Users --------------------------------------------------------------

    async def get_user(self, user_id: int) -> dict | None:
        return await self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))

    async def get_user_by_username(self, username: str) -> dict | None:
        return await self._fetch_one("SELECT * FROM users WHERE username = ?", (username,))

    async def list_users(self) -> list[dict]:
        return await self._fetch_all("SELECT * FROM users ORDER BY id")

    async def create_user(self, data: dict) -> dict:
        try:
            user_id = await self._insert(
                "INSERT INTO users (username, password, email, full_name, role, avatar) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    data["username"],
                    data["password"],
                    data["email"],
                    data["full_name"],
                    data.get("role", "employee"),
                    data.get("avatar"),
                ),
            )
        except aiosqlite.IntegrityError as exc:
            raise ConflictError("Username already exists") from exc
        return await self.get_user(user_id)

    # -- Tasks --------------------------------------------------------------

    async def list_tasks(self) -> list[dict]:
        return await self._fetch_all("SELECT * FROM tasks ORDER BY id")

    async def get_task(self, task_id: int) -> dict | None:
        return await self._fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))

    async def create_task(self, data: dict) -> dict:
        task_id = await self._insert(
            "INSERT INTO tasks (title, description, status, priority, due_date, "
            "created_at, estimated_hours, created_by_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                data["title"],
                data.get("description"),
                data.get("status", "todo"),
                data.get("priority", "medium"),
                data.get("due_date"),
                utcnow_iso(),
                data.get("estimated_hours"),
                data["created_by_id"],
            ),
        )
        return await self.get_task(task_id)

    async def update_task(self, task_id: int, changes: dict) -> dict | None:
        columns = [column for column in TASK_UPDATE_COLUMNS if column in changes]
        if columns:
            assignments = ", ".join(f"{column} = ?" for column in columns)
            await self._db.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ?",
                (*[changes[column] for column in columns], task_id),
            )
            await self._db.commit()
        return await self.get_task(task_id)

    async def delete_task(self, task_id: int) -> bool:
        cursor = await self._db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        await self._db.commit()
        return cursor.rowcount > 0

    # -- Task assignees -----------------------------------------------------

    async def get_task_assignees(self, task_id: int) -> list[dict]:
        return await self._fetch_all(
            "SELECT * FROM task_assignees WHERE task_id = ? ORDER BY id", (task_id,)
        )

    async def assign_task(self, task_id: int, user_id: int) -> dict:
        try:
            assignee_id = await self._insert(
                "INSERT INTO task_assignees (task_id, user_id) VALUES (?, ?)",
                (task_id, user_id),
            )
        except aiosqlite.IntegrityError as exc:
            raise ConflictError("User is already assigned to this task") from exc
        return {"id": assignee_id, "task_id": task_id, "user_id": user_id}

    async def remove_task_assignee(self, task_id: int, user_id: int) -> bool:
        cursor = await self._db.execute(
            "DELETE FROM task_assignees WHERE task_id = ? AND user_id = ?",
            (task_id, user_id),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    # -- Comments -----------------------------------------------------------

    async def list_comments(self, task_id: int) -> list[dict]:
        return await self._fetch_all(
            "SELECT * FROM comments WHERE task_id = ? ORDER BY created_at ASC, id ASC",
            (task_id,),
        )

    async def create_comment(self, data: dict) -> dict:
        comment_id = await self._insert(
            "INSERT INTO comments (task_id, user_id, content, created_at) VALUES (?, ?, ?, ?)",
            (data["task_id"], data["user_id"], data["content"], utcnow_iso()),
        )
        return await self._fetch_one("SELECT * FROM comments WHERE id = ?", (comment_id,))

    # -- Attachments --------------------------------------------------------

    async def list_attachments(self, task_id: int) -> list[dict]:
        return await self._fetch_all(
            "SELECT * FROM attachments WHERE task_id = ? ORDER BY created_at ASC, id ASC",
            (task_id,),
        )

    async def create_attachment(self, data: dict) -> dict:
        attachment_id = await self._insert(
            "INSERT INTO attachments (task_id, user_id, file_name, file_type, file_size, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                data["task_id"],
                data["user_id"],
                data["file_name"],
                data["file_type"],
                data["file_size"],
                utcnow_iso(),
            ),
        )
        return await self._fetch_one("SELECT * FROM attachments WHERE id = ?", (attachment_id,))

    # -- Time entries -------------------------------------------------------

    async def list_time_entries_for_task(self, task_id: int) -> list[dict]:
        return await self._fetch_all(
            "SELECT * FROM time_entries WHERE task_id = ? ORDER BY start_time ASC, id ASC",
            (task_id,),
        )

    async def list_time_entries_for_user(self, user_id: int) -> list[dict]:
        return await self._fetch_all(
            "SELECT * FROM time_entries WHERE user_id = ? ORDER BY start_time DESC, id DESC",
            (user_id,),
        )

    async def create_time_entry(self, data: dict) -> dict:
        entry_id = await self._insert(
            "INSERT INTO time_entries (task_id, user_id, start_time, end_time, duration, notes) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                data["task_id"],
                data["user_id"],
                data["start_time"],
                data.get("end_time"),
                data.get("duration"),
                data.get("notes"),
            ),
        )
        return await self._fetch_one("SELECT * FROM time_entries WHERE id = ?", (entry_id,))

    # -- Notifications ------------------------------------------------------

    async def list_notifications(self, user_id: int) -> list[dict]:
        async with self._read() as conn:
            cursor = await conn.execute(
                "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [_notification_from_row(row) for row in rows]

    async def get_notification(self, notification_id: int) -> dict | None:
        async with self._read() as conn:
            cursor = await conn.execute(
                "SELECT * FROM notifications WHERE id = ?", (notification_id,)
            )
            row = await cursor.fetchone()
        return _notification_from_row(row) if row is not None else None

    async def create_notification(self, data: dict) -> dict:
        notification_id = await self._insert(
            "INSERT INTO notifications (user_id, title, message, type, is_read, created_at, related_id) "
            "VALUES (?, ?, ?, ?, 0, ?, ?)",
            (
                data["user_id"],
                data["title"],
                data["message"],
                data["type"],
                utcnow_iso(),
                data.get("related_id"),
            ),
        )
        return await self.get_notification(notification_id)

    async def mark_notification_read(self, notification_id: int) -> dict | None:
        await self._db.execute(
            "UPDATE notifications SET is_read = 1 WHERE id = ?", (notification_id,)
        )
        await self._db.commit()
        return await self.get_notification(notification_id)
