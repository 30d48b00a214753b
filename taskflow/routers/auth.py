"""Auth router: password registration and login, session info, logout.

Endpoints:
- POST /api/register -> create an account and log it in
- POST /api/login    -> verify credentials, start a session
- POST /api/logout   -> destroy the session, clear the cookie
- GET  /api/user     -> current user
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from taskflow.config import get_settings
from taskflow.dependencies import get_current_user, get_session_store, get_storage
from taskflow.models import LoginRequest, RegisterRequest, SuccessResponse, UserResponse
from taskflow.services import auth_service
from taskflow.services.session_cookie import sign_session_id, unsign_session_cookie

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _public_user(user: dict) -> dict:
    return UserResponse(**user).model_dump()


def _set_session_cookie(response, session_id: str) -> None:
    """Set the signed, httpOnly session cookie on *response*."""
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=sign_session_id(session_id, settings.session_secret),
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        max_age=settings.session_duration_days * 24 * 3600,
        path="/",
    )


def _clear_session_cookie(response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )


async def _login_response(session_store, user: dict, status_code: int) -> JSONResponse:
    session_id = await auth_service.create_login_session(session_store, user["id"])
    response = JSONResponse(status_code=status_code, content=_public_user(user))
    _set_session_cookie(response, session_id)
    return response


# ---------------------------------------------------------------------------
# POST /api/register
# ---------------------------------------------------------------------------


@router.post("/register", status_code=201, response_model=UserResponse)
async def register(
    body: RegisterRequest,
    storage=Depends(get_storage),
    session_store=Depends(get_session_store),
):
    """Create a user and log them in.  409 if the username is taken."""
    user = await auth_service.register_user(
        storage, body.model_dump(), rounds=get_settings().bcrypt_rounds
    )
    return await _login_response(session_store, user, status_code=201)


# ---------------------------------------------------------------------------
# POST /api/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=UserResponse)
async def login(
    body: LoginRequest,
    storage=Depends(get_storage),
    session_store=Depends(get_session_store),
):
    user = await auth_service.authenticate(storage, body.username, body.password)
    logger.info("User %s logged in", user["id"])
    return await _login_response(session_store, user, status_code=200)


# ---------------------------------------------------------------------------
# POST /api/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    request: Request,
    session_store=Depends(get_session_store),
):
    """Destroy the current session (if any) and clear the cookie."""
    settings = get_settings()
    session_id = unsign_session_cookie(
        request.cookies.get(settings.session_cookie_name), settings.session_secret
    )
    if session_id:
        await session_store.destroy(session_id)

    response = JSONResponse(content={"success": True})
    _clear_session_cookie(response)
    return response


# ---------------------------------------------------------------------------
# GET /api/user
# ---------------------------------------------------------------------------


@router.get("/user", response_model=UserResponse)
async def get_me(
    user: dict = Depends(get_current_user),
) -> UserResponse:
    """Return the currently authenticated user's info."""
    return UserResponse(**user)
