"""In-memory persistence adapter.

Used as a fallback when the SQLite database cannot be opened, and by tests
that do not need a real database.  Mirrors the coroutine API of
``SqliteStorage`` exactly, including ordering and cascade-on-delete.
"""

from __future__ import annotations

import copy
import itertools

from taskflow.exceptions import ConflictError
from taskflow.services.storage import TASK_UPDATE_COLUMNS, utcnow_iso


class MemoryStorage:
    """Dict-backed storage with one auto-incrementing id counter per collection."""

    name = "memory"

    def __init__(self) -> None:
        self._users: dict[int, dict] = {}
        self._tasks: dict[int, dict] = {}
        self._assignees: dict[int, dict] = {}
        self._comments: dict[int, dict] = {}
        self._attachments: dict[int, dict] = {}
        self._time_entries: dict[int, dict] = {}
        self._notifications: dict[int, dict] = {}
        self._counters: dict[str, itertools.count] = {}

    def _next_id(self, collection: str) -> int:
        counter = self._counters.setdefault(collection, itertools.count(1))
        return next(counter)

    @staticmethod
    def _copy(record: dict | None) -> dict | None:
        # Callers must never mutate stored records through a returned dict.
        return copy.deepcopy(record) if record is not None else None

    async def ping(self) -> bool:
        return True

    # -- Users --------------------------------------------------------------

    async def get_user(self, user_id: int) -> dict | None:
        return self._copy(self._users.get(user_id))

    async def get_user_by_username(self, username: str) -> dict | None:
        for user in self._users.values():
            if user["username"] == username:
                return self._copy(user)
        return None

    async def list_users(self) -> list[dict]:
        return [self._copy(user) for user in self._users.values()]

    async def create_user(self, data: dict) -> dict:
        if await self.get_user_by_username(data["username"]) is not None:
            raise ConflictError("Username already exists")
        user = {
            "id": self._next_id("users"),
            "username": data["username"],
            "password": data["password"],
            "email": data["email"],
            "full_name": data["full_name"],
            "role": data.get("role", "employee"),
            "avatar": data.get("avatar"),
        }
        self._users[user["id"]] = user
        return self._copy(user)

    # -- Tasks --------------------------------------------------------------

    async def list_tasks(self) -> list[dict]:
        return [self._copy(task) for task in self._tasks.values()]

    async def get_task(self, task_id: int) -> dict | None:
        return self._copy(self._tasks.get(task_id))

    async def create_task(self, data: dict) -> dict:
        task = {
            "id": self._next_id("tasks"),
            "title": data["title"],
            "description": data.get("description"),
            "status": data.get("status", "todo"),
            "priority": data.get("priority", "medium"),
            "due_date": data.get("due_date"),
            "created_at": utcnow_iso(),
            "estimated_hours": data.get("estimated_hours"),
            "created_by_id": data["created_by_id"],
        }
        self._tasks[task["id"]] = task
        return self._copy(task)

    async def update_task(self, task_id: int, changes: dict) -> dict | None:
        task = self._tasks.get(task_id)
        if task is None:
            return None
        for column in TASK_UPDATE_COLUMNS:
            if column in changes:
                task[column] = changes[column]
        return self._copy(task)

    async def delete_task(self, task_id: int) -> bool:
        if self._tasks.pop(task_id, None) is None:
            return False
        for table in (self._assignees, self._comments, self._attachments, self._time_entries):
            for record_id in [rid for rid, rec in table.items() if rec["task_id"] == task_id]:
                del table[record_id]
        return True

    # -- Task assignees -----------------------------------------------------

    async def get_task_assignees(self, task_id: int) -> list[dict]:
        return [self._copy(a) for a in self._assignees.values() if a["task_id"] == task_id]

    async def assign_task(self, task_id: int, user_id: int) -> dict:
        for assignee in self._assignees.values():
            if assignee["task_id"] == task_id and assignee["user_id"] == user_id:
                raise ConflictError("User is already assigned to this task")
        assignee = {"id": self._next_id("task_assignees"), "task_id": task_id, "user_id": user_id}
        self._assignees[assignee["id"]] = assignee
        return self._copy(assignee)

    async def remove_task_assignee(self, task_id: int, user_id: int) -> bool:
        for assignee_id, assignee in self._assignees.items():
            if assignee["task_id"] == task_id and assignee["user_id"] == user_id:
                del self._assignees[assignee_id]
                return True
        return False

    # -- Comments -----------------------------------------------------------

    async def list_comments(self, task_id: int) -> list[dict]:
        comments = [c for c in self._comments.values() if c["task_id"] == task_id]
        comments.sort(key=lambda c: (c["created_at"], c["id"]))
        return [self._copy(c) for c in comments]

    async def create_comment(self, data: dict) -> dict:
        comment = {
            "id": self._next_id("comments"),
            "task_id": data["task_id"],
            "user_id": data["user_id"],
            "content": data["content"],
            "created_at": utcnow_iso(),
        }
        self._comments[comment["id"]] = comment
        return self._copy(comment)

    # -- Attachments --------------------------------------------------------

    async def list_attachments(self, task_id: int) -> list[dict]:
        attachments = [a for a in self._attachments.values() if a["task_id"] == task_id]
        attachments.sort(key=lambda a: (a["created_at"], a["id"]))
        return [self._copy(a) for a in attachments]

    async def create_attachment(self, data: dict) -> dict:
        attachment = {
            "id": self._next_id("attachments"),
            "task_id": data["task_id"],
            "user_id": data["user_id"],
            "file_name": data["file_name"],
            "file_type": data["file_type"],
            "file_size": data["file_size"],
            "created_at": utcnow_iso(),
        }
        self._attachments[attachment["id"]] = attachment
        return self._copy(attachment)

    # -- Time entries -------------------------------------------------------

    async def list_time_entries_for_task(self, task_id: int) -> list[dict]:
        entries = [e for e in self._time_entries.values() if e["task_id"] == task_id]
        entries.sort(key=lambda e: (e["start_time"], e["id"]))
        return [self._copy(e) for e in entries]

    async def list_time_entries_for_user(self, user_id: int) -> list[dict]:
        entries = [e for e in self._time_entries.values() if e["user_id"] == user_id]
        entries.sort(key=lambda e: (e["start_time"], e["id"]), reverse=True)
        return [self._copy(e) for e in entries]

    async def create_time_entry(self, data: dict) -> dict:
        entry = {
            "id": self._next_id("time_entries"),
            "task_id": data["task_id"],
            "user_id": data["user_id"],
            "start_time": data["start_time"],
            "end_time": data.get("end_time"),
            "duration": data.get("duration"),
            "notes": data.get("notes"),
        }
        self._time_entries[entry["id"]] = entry
        return self._copy(entry)

    # -- Notifications ------------------------------------------------------

    async def list_notifications(self, user_id: int) -> list[dict]:
        notifications = [n for n in self._notifications.values() if n["user_id"] == user_id]
        notifications.sort(key=lambda n: (n["created_at"], n["id"]), reverse=True)
        return [self._copy(n) for n in notifications]

    async def get_notification(self, notification_id: int) -> dict | None:
        return self._copy(self._notifications.get(notification_id))

    async def create_notification(self, data: dict) -> dict:
        notification = {
            "id": self._next_id("notifications"),
            "user_id": data["user_id"],
            "title": data["title"],
            "message": data["message"],
            "type": data["type"],
            "is_read": False,
            "created_at": utcnow_iso(),
            "related_id": data.get("related_id"),
        }
        self._notifications[notification["id"]] = notification
        return self._copy(notification)

    async def mark_notification_read(self, notification_id: int) -> dict | None:
        notification = self._notifications.get(notification_id)
        if notification is None:
            return None
        notification["is_read"] = True
        return self._copy(notification)
