"""Users router -- read-only public user records.

Endpoints:
- GET /api/users      -> list users
- GET /api/users/{id} -> fetch one user
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from taskflow.dependencies import get_current_user, get_storage
from taskflow.exceptions import NotFoundError
from taskflow.models import UserResponse

router = APIRouter()


@router.get("", response_model=list[UserResponse])
async def list_users(
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> list[UserResponse]:
    return [UserResponse(**u) for u in await storage.list_users()]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    user: dict = Depends(get_current_user),
    storage=Depends(get_storage),
) -> UserResponse:
    found = await storage.get_user(user_id)
    if found is None:
        raise NotFoundError("User not found")
    return UserResponse(**found)
