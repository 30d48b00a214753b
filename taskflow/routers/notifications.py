"""Notifications router -- the current user's inbox.

Endpoints:
- GET /api/notifications           -> list, newest first
- PUT /api/notifications/{id}/read -> mark one read (recipient only)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from taskflow.dependencies import get_current_user, get_storage, get_task_service
from taskflow.models import NotificationResponse
from taskflow.services.task_service import TaskService

router = APIRouter()


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> list[NotificationResponse]:
    """Return the inbox.  This is also how a reconnecting client catches up."""
    return [NotificationResponse(**n) for n in await storage.list_notifications(user["id"])]


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    user: dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> NotificationResponse:
    notification = await service.mark_notification_read(user["id"], notification_id)
    return NotificationResponse(**notification)
