"""Task service: write paths and their notification/broadcast fan-out.

Every write follows the same sequence:

1. Persist the mutation (awaited; failures propagate to the HTTP layer and
   nothing is dispatched).
2. Hand the fan-out coroutine to the ``FanoutRunner``.  That coroutine
   persists derived notifications, pushes each one to its recipient, then
   broadcasts the structural event.

Notification rules: the actor never notifies themself.  Comment broadcasts
skip the actor's connections; every other broadcast reaches everyone,
including the actor's other tabs.
"""

from __future__ import annotations

import logging
from collections.abc import Coroutine, Iterable
from typing import Any

from taskflow.exceptions import ForbiddenError, NotFoundError
from taskflow.services import ws_messages
from taskflow.services.dispatcher import Dispatcher
from taskflow.services.fanout import FanoutRunner

logger = logging.getLogger(__name__)


def _unique_recipients(user_ids: Iterable[int], *, exclude: int) -> list[int]:
    """De-duplicate *user_ids* (first-seen order) and drop *exclude*."""
    seen: set[int] = set()
    recipients: list[int] = []
    for user_id in user_ids:
        if user_id == exclude or user_id in seen:
            continue
        seen.add(user_id)
        recipients.append(user_id)
    return recipients


class TaskService:
    """Mutation entry points for tasks, assignees, comments, time entries and notifications."""

    def __init__(self, storage, dispatcher: Dispatcher, fanout: FanoutRunner | None = None) -> None:
        self.storage = storage
        self.dispatcher = dispatcher
        self.fanout = fanout

    async def _schedule(self, job: Coroutine[Any, Any, Any], label: str) -> None:
        if self.fanout is None:
            await job
        else:
            self.fanout.submit(job, label=label)

    async def _require_task(self, task_id: int) -> dict:
        task = await self.storage.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def _notify(
        self,
        user_ids: Iterable[int],
        *,
        type: str,
        title: str,
        message: str,
        related_id: int | None,
    ) -> list[dict]:
        """Persist one notification per recipient, then push each to its recipient.

        A storage failure for one recipient is logged and skipped; the
        primary mutation has already committed.
        """
        created: list[dict] = []
        for user_id in user_ids:
            try:
                notification = await self.storage.create_notification(
                    {
                        "user_id": user_id,
                        "type": type,
                        "title": title,
                        "message": message,
                        "related_id": related_id,
                    }
                )
            except Exception:
                logger.exception("Failed to persist %s notification for user %s", type, user_id)
                continue
            created.append(notification)
        for notification in created:
            await self.dispatcher.send_to_user(
                notification["user_id"], ws_messages.notification(notification=notification)
            )
        return created

    # -- Tasks --------------------------------------------------------------

    async def create_task(self, actor_id: int, data: dict) -> dict:
        task = await self.storage.create_task({**data, "created_by_id": actor_id})
        logger.info("User %s created task %s", actor_id, task["id"])
        await self._schedule(
            self.dispatcher.broadcast(ws_messages.task_created(task=task)),
            label=f"task_created:{task['id']}",
        )
        return task

    async def update_task(self, task_id: int, changes: dict) -> dict:
        await self._require_task(task_id)
        task = await self.storage.update_task(task_id, changes)
        if task is None:
            raise NotFoundError("Task not found")
        await self._schedule(
            self.dispatcher.broadcast(ws_messages.task_updated(task=task)),
            label=f"task_updated:{task_id}",
        )
        return task

    async def delete_task(self, task_id: int) -> None:
        if not await self.storage.delete_task(task_id):
            raise NotFoundError("Task not found")
        await self._schedule(
            self.dispatcher.broadcast(ws_messages.task_deleted(task_id=task_id)),
            label=f"task_deleted:{task_id}",
        )

    # -- Assignees ----------------------------------------------------------

    async def assign_user(self, actor_id: int, task_id: int, user_id: int) -> dict:
        task = await self._require_task(task_id)
        if await self.storage.get_user(user_id) is None:
            raise NotFoundError("User not found")
        assignee = await self.storage.assign_task(task_id, user_id)
        await self._schedule(
            self._after_assign(actor_id, task, user_id),
            label=f"task_assigned:{task_id}:{user_id}",
        )
        return assignee

    async def _after_assign(self, actor_id: int, task: dict, user_id: int) -> None:
        await self._notify(
            _unique_recipients([user_id], exclude=actor_id),
            type="task_assigned",
            title="New Task Assignment",
            message=f"You have been assigned to task: {task['title']}",
            related_id=task["id"],
        )
        await self.dispatcher.broadcast(
            ws_messages.task_assigned(task_id=task["id"], user_id=user_id, task=task)
        )

    async def unassign_user(self, task_id: int, user_id: int) -> None:
        if not await self.storage.remove_task_assignee(task_id, user_id):
            raise NotFoundError("Assignment not found")

    # -- Comments -----------------------------------------------------------

    async def add_comment(self, actor_id: int, task_id: int, content: str) -> dict:
        task = await self._require_task(task_id)
        comment = await self.storage.create_comment(
            {"task_id": task_id, "user_id": actor_id, "content": content}
        )
        await self._schedule(
            self._after_comment(actor_id, comment, task),
            label=f"comment_added:{comment['id']}",
        )
        return comment

    async def _after_comment(self, actor_id: int, comment: dict, task: dict) -> None:
        assignees = await self.storage.get_task_assignees(task["id"])
        await self._notify(
            _unique_recipients((a["user_id"] for a in assignees), exclude=actor_id),
            type="comment_added",
            title="New Comment",
            message=f"New comment on task: {task['title']}",
            related_id=task["id"],
        )
        await self.dispatcher.broadcast(
            ws_messages.comment_added(comment=comment, task=task),
            exclude_user_id=actor_id,
        )

    # -- Time entries -------------------------------------------------------

    async def add_time_entry(self, actor_id: int, task_id: int, data: dict) -> dict:
        task = await self._require_task(task_id)
        time_entry = await self.storage.create_time_entry(
            {**data, "task_id": task_id, "user_id": actor_id}
        )
        await self._schedule(
            self._after_time_entry(actor_id, time_entry, task),
            label=f"time_entry_added:{time_entry['id']}",
        )
        return time_entry

    async def _after_time_entry(self, actor_id: int, time_entry: dict, task: dict) -> None:
        assignees = await self.storage.get_task_assignees(task["id"])
        candidates = [a["user_id"] for a in assignees] + [task["created_by_id"]]
        await self._notify(
            _unique_recipients(candidates, exclude=actor_id),
            type="time_tracked",
            title="Time Entry Added",
            message=f"New time entry logged for task: {task['title']}",
            related_id=task["id"],
        )
        await self.dispatcher.broadcast(
            ws_messages.time_entry_added(
                task_id=task["id"], user_id=actor_id, time_entry=time_entry, task=task
            )
        )

    # -- Attachments --------------------------------------------------------

    async def add_attachment(self, actor_id: int, task_id: int, data: dict) -> dict:
        await self._require_task(task_id)
        return await self.storage.create_attachment(
            {**data, "task_id": task_id, "user_id": actor_id}
        )

    # -- Notifications ------------------------------------------------------

    async def mark_notification_read(self, actor_id: int, notification_id: int) -> dict:
        """Flip ``is_read`` to true.  Idempotent; dispatches nothing."""
        notification = await self.storage.get_notification(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        if notification["user_id"] != actor_id:
            raise ForbiddenError("Not authorized")
        if notification["is_read"]:
            return notification
        updated = await self.storage.mark_notification_read(notification_id)
        if updated is None:
            raise NotFoundError("Notification not found")
        return updated
