"""WebSocket event factory functions.

Each function returns an immutable ``Event`` with a ``type`` drawn from
``EVENT_TYPES`` and a JSON-serialisable payload.  Services pass events to
``Dispatcher.broadcast()`` / ``Dispatcher.send_to_user()``, which serialise
them once via ``Event.to_json()``.

Wire envelope: ``{"type": str, "payload": any}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

TASK_UPDATE = "task_update"
COMMENT_ADDED = "comment_added"
NOTIFICATION = "notification"
TASK_ASSIGNED = "task_assigned"
TIME_ENTRY_ADDED = "time_entry_added"
CONNECTED = "connected"

EVENT_TYPES = frozenset(
    {TASK_UPDATE, COMMENT_ADDED, NOTIFICATION, TASK_ASSIGNED, TIME_ENTRY_ADDED, CONNECTED}
)


@dataclass(frozen=True)
class Event:
    type: str
    payload: Any

    def __post_init__(self) -> None:
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {self.type!r}")

    def to_dict(self) -> dict:
        return {"type": self.type, "payload": self.payload}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def connected(*, user_id: int) -> Event:
    """Handshake acknowledgment, sent only to the new connection."""
    return Event(CONNECTED, {"user_id": user_id})


def task_created(*, task: dict) -> Event:
    return Event(TASK_UPDATE, {"action": "created", "task": task})


def task_updated(*, task: dict) -> Event:
    return Event(TASK_UPDATE, {"action": "updated", "task": task})


def task_deleted(*, task_id: int) -> Event:
    """Task removed; only the id survives."""
    return Event(TASK_UPDATE, {"action": "deleted", "task_id": task_id})


def task_assigned(*, task_id: int, user_id: int, task: dict) -> Event:
    return Event(TASK_ASSIGNED, {"task_id": task_id, "user_id": user_id, "task": task})


def comment_added(*, comment: dict, task: dict) -> Event:
    return Event(COMMENT_ADDED, {"comment": comment, "task": task})


def time_entry_added(*, task_id: int, user_id: int, time_entry: dict, task: dict) -> Event:
    return Event(
        TIME_ENTRY_ADDED,
        {"task_id": task_id, "user_id": user_id, "time_entry": time_entry, "task": task},
    )


def notification(*, notification: dict) -> Event:
    """A persisted notification record, pushed to its recipient."""
    return Event(NOTIFICATION, notification)
