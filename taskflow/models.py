"""Pydantic request/response models for the TaskFlow REST API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

Role = Literal["admin", "manager", "employee"]
TaskStatus = Literal["todo", "inProgress", "completed"]
TaskPriority = Literal["low", "medium", "high"]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Body for ``POST /api/register``."""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=6, max_length=128)
    email: str = Field(..., min_length=3, max_length=254)
    full_name: str = Field(..., min_length=1, max_length=100)
    role: Role = "employee"
    avatar: str | None = None


class LoginRequest(BaseModel):
    """Body for ``POST /api/login``."""

    username: str
    password: str


class CreateTaskRequest(BaseModel):
    """Body for ``POST /api/tasks``."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)


class UpdateTaskRequest(BaseModel):
    """Body for ``PUT /api/tasks/{id}``.

    Only fields present in the request body are applied; an explicit ``null``
    clears ``description``, ``due_date`` or ``estimated_hours``.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _reject_null_required(self) -> "UpdateTaskRequest":
        for name in ("title", "status", "priority"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class AssignUserRequest(BaseModel):
    """Body for ``POST /api/tasks/{id}/assignees``."""

    user_id: int


class CreateCommentRequest(BaseModel):
    """Body for ``POST /api/tasks/{id}/comments``."""

    content: str = Field(..., min_length=1, max_length=10000)


class CreateTimeEntryRequest(BaseModel):
    """Body for ``POST /api/tasks/{id}/time``.

    ``duration`` is in minutes; derived from the start/end times when omitted.
    """

    start_time: datetime
    end_time: datetime | None = None
    duration: int | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_naive_utc(cls, value: datetime | None) -> datetime | None:
        # Stored timestamps are naive UTC; aware inputs are converted.
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @model_validator(mode="after")
    def _check_times(self) -> "CreateTimeEntryRequest":
        if self.end_time is not None:
            if self.end_time < self.start_time:
                raise ValueError("end_time must not be before start_time")
            if self.duration is None:
                self.duration = int((self.end_time - self.start_time).total_seconds() // 60)
        return self


class CreateAttachmentRequest(BaseModel):
    """Body for ``POST /api/tasks/{id}/attachments`` (metadata only)."""

    file_name: str = Field(..., min_length=1, max_length=255)
    file_type: str = Field(..., min_length=1, max_length=100)
    file_size: int = Field(..., ge=0)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """A user record without the password hash."""

    id: int
    username: str
    email: str
    full_name: str
    role: Role
    avatar: str | None = None


class TaskResponse(BaseModel):
    id: int
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    due_date: datetime | None = None
    created_at: datetime
    estimated_hours: float | None = None
    created_by_id: int


class AssigneeResponse(BaseModel):
    id: int
    task_id: int
    user_id: int


class CommentResponse(BaseModel):
    id: int
    task_id: int
    user_id: int
    content: str
    created_at: datetime


class AttachmentResponse(BaseModel):
    id: int
    task_id: int
    user_id: int
    file_name: str
    file_type: str
    file_size: int
    created_at: datetime


class TimeEntryResponse(BaseModel):
    id: int
    task_id: int
    user_id: int
    start_time: datetime
    end_time: datetime | None = None
    duration: int | None = None
    notes: str | None = None


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    is_read: bool
    created_at: datetime
    related_id: int | None = None


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool


class ErrorResponse(BaseModel):
    """Standardized error response format."""

    error: str
    details: str | None = None
