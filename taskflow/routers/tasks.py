"""Tasks router -- task CRUD plus assignees, comments, time entries, attachments.

Reads go straight to storage; every write goes through ``TaskService`` so
that the commit happens before any notification or broadcast is scheduled.

Endpoints:
- GET    /api/tasks                             -> list tasks
- POST   /api/tasks                             -> create a task
- GET    /api/tasks/{id}                        -> fetch a task
- PUT    /api/tasks/{id}                        -> partial update
- DELETE /api/tasks/{id}                        -> delete (cascades)
- GET    /api/tasks/{id}/assignees              -> list assignees
- POST   /api/tasks/{id}/assignees              -> assign a user
- DELETE /api/tasks/{id}/assignees/{user_id}    -> unassign a user
- GET    /api/tasks/{id}/comments               -> list comments
- POST   /api/tasks/{id}/comments               -> add a comment
- GET    /api/tasks/{id}/time                   -> list time entries
- POST   /api/tasks/{id}/time                   -> log a time entry
- GET    /api/tasks/{id}/attachments            -> list attachments
- POST   /api/tasks/{id}/attachments            -> add attachment metadata
- GET    /api/time-entries                      -> current user's time entries
  (also served at /api/timeEntries)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from taskflow.dependencies import get_current_user, get_storage, get_task_service
from taskflow.exceptions import NotFoundError
from taskflow.models import (
    AssigneeResponse,
    AssignUserRequest,
    AttachmentResponse,
    CommentResponse,
    CreateAttachmentRequest,
    CreateCommentRequest,
    CreateTaskRequest,
    CreateTimeEntryRequest,
    TaskResponse,
    TimeEntryResponse,
    UpdateTaskRequest,
)
from taskflow.services.task_service import TaskService

router = APIRouter()

# Mounted separately at /api/time-entries
time_entries_router = APIRouter()


async def _require_task(storage, task_id: int) -> dict:
    task = await storage.get_task(task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> list[TaskResponse]:
    return [TaskResponse(**t) for t in await storage.list_tasks()]


@router.post("", status_code=201, response_model=TaskResponse)
async def create_task(
    body: CreateTaskRequest,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskResponse:
    task = await service.create_task(user["id"], body.model_dump(mode="json"))
    return TaskResponse(**task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> TaskResponse:
    return TaskResponse(**await _require_task(storage, task_id))


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    body: UpdateTaskRequest,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskResponse:
    """Apply only the fields present in the request body."""
    changes = body.model_dump(mode="json", exclude_unset=True)
    task = await service.update_task(task_id, changes)
    return TaskResponse(**task)


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: int,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> Response:
    await service.delete_task(task_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Assignees
# ---------------------------------------------------------------------------


@router.get("/{task_id}/assignees", response_model=list[AssigneeResponse])
async def list_assignees(
    task_id: int,
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> list[AssigneeResponse]:
    await _require_task(storage, task_id)
    return [AssigneeResponse(**a) for a in await storage.get_task_assignees(task_id)]


@router.post("/{task_id}/assignees", status_code=201, response_model=AssigneeResponse)
async def assign_user(
    task_id: int,
    body: AssignUserRequest,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> AssigneeResponse:
    assignee = await service.assign_user(user["id"], task_id, body.user_id)
    return AssigneeResponse(**assignee)


@router.delete("/{task_id}/assignees/{user_id}", status_code=204)
async def unassign_user(
    task_id: int,
    user_id: int,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> Response:
    await service.unassign_user(task_id, user_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.get("/{task_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    task_id: int,
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> list[CommentResponse]:
    await _require_task(storage, task_id)
    return [CommentResponse(**c) for c in await storage.list_comments(task_id)]


@router.post("/{task_id}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    task_id: int,
    body: CreateCommentRequest,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> CommentResponse:
    comment = await service.add_comment(user["id"], task_id, body.content)
    return CommentResponse(**comment)


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------


@router.get("/{task_id}/time", response_model=list[TimeEntryResponse])
async def list_time_entries(
    task_id: int,
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> list[TimeEntryResponse]:
    await _require_task(storage, task_id)
    return [TimeEntryResponse(**e) for e in await storage.list_time_entries_for_task(task_id)]


@router.post("/{task_id}/time", status_code=201, response_model=TimeEntryResponse)
async def add_time_entry(
    task_id: int,
    body: CreateTimeEntryRequest,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TimeEntryResponse:
    time_entry = await service.add_time_entry(user["id"], task_id, body.model_dump(mode="json"))
    return TimeEntryResponse(**time_entry)


@time_entries_router.get("", response_model=list[TimeEntryResponse])
async def list_my_time_entries(
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> list[TimeEntryResponse]:
    """Return the current user's time entries, most recent first."""
    return [TimeEntryResponse(**e) for e in await storage.list_time_entries_for_user(user["id"])]


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


@router.get("/{task_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(
    task_id: int,
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> list[AttachmentResponse]:
    await _require_task(storage, task_id)
    return [AttachmentResponse(**a) for a in await storage.list_attachments(task_id)]


@router.post("/{task_id}/attachments", status_code=201, response_model=AttachmentResponse)
async def add_attachment(
    task_id: int,
    body: CreateAttachmentRequest,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> AttachmentResponse:
    attachment = await service.add_attachment(user["id"], task_id, body.model_dump())
    return AttachmentResponse(**attachment)
