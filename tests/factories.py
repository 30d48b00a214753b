"""Factory functions for generating test data dicts.

Each factory produces a valid dict for the matching storage ``create_*``
call.  Pass keyword overrides to customize individual fields.
"""

from datetime import datetime, timedelta
from uuid import uuid4


def make_user(**overrides: object) -> dict:
    """Return a user dict accepted by ``create_user`` (password already "hashed")."""
    suffix = uuid4().hex[:6]
    defaults: dict = {
        "username": f"user_{suffix}",
        "password": "not-a-real-hash",
        "email": f"user_{suffix}@test.com",
        "full_name": "Test User",
        "role": "employee",
        "avatar": None,
    }
    return {**defaults, **overrides}


def make_registration(**overrides: object) -> dict:
    """Return a ``POST /api/register`` body with a plain-text password."""
    suffix = uuid4().hex[:6]
    defaults: dict = {
        "username": f"user_{suffix}",
        "password": "password123",
        "email": f"user_{suffix}@test.com",
        "full_name": "Test User",
        "role": "employee",
    }
    return {**defaults, **overrides}


def make_task(**overrides: object) -> dict:
    """Return a task dict; ``created_by_id`` must be overridden for storage calls."""
    defaults: dict = {
        "title": "Write quarterly report",
        "description": "Summarise Q3 numbers",
        "status": "todo",
        "priority": "medium",
        "due_date": None,
        "estimated_hours": 4.0,
        "created_by_id": 1,
    }
    return {**defaults, **overrides}


def make_time_entry(**overrides: object) -> dict:
    start = datetime(2026, 3, 2, 9, 0, 0)
    defaults: dict = {
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(minutes=90)).isoformat(),
        "duration": 90,
        "notes": "Drafting",
    }
    return {**defaults, **overrides}


def make_attachment(**overrides: object) -> dict:
    defaults: dict = {
        "file_name": "report.pdf",
        "file_type": "application/pdf",
        "file_size": 2048,
    }
    return {**defaults, **overrides}


def make_notification(**overrides: object) -> dict:
    defaults: dict = {
        "user_id": 1,
        "type": "task_assigned",
        "title": "New Task Assignment",
        "message": "You have been assigned to task: Write quarterly report",
        "related_id": None,
    }
    return {**defaults, **overrides}
