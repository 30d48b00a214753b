"""Tests for WebSocket handshake authentication (cookie header -> user id)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from taskflow.services.handshake import (
    UNAUTHORIZED_CLOSE_CODE,
    RejectReason,
    authenticate_cookie_header,
)
from taskflow.services.session_cookie import sign_session_id

SECRET = "handshake-secret"
COOKIE = "taskflow.sid"


async def _auth(header, store, timeout=None):
    return await authenticate_cookie_header(
        header, store, secret=SECRET, cookie_name=COOKIE, timeout=timeout
    )


def _header(session_id: str, *, extra: str = "") -> str:
    return f"{extra}{COOKIE}={sign_session_id(session_id, SECRET)}"


class TestAccepted:
    @pytest.mark.asyncio
    async def test_valid_session(self, session_store):
        session_id = await session_store.create({"user_id": 11})
        result = await _auth(_header(session_id), session_store)
        assert result.accepted
        assert result.user_id == 11
        assert result.reason is None

    @pytest.mark.asyncio
    async def test_other_cookies_ignored(self, session_store):
        session_id = await session_store.create({"user_id": 11})
        result = await _auth(_header(session_id, extra="theme=dark; "), session_store)
        assert result.user_id == 11

    @pytest.mark.asyncio
    async def test_url_encoded_prefix(self, session_store):
        session_id = await session_store.create({"user_id": 11})
        value = sign_session_id(session_id, SECRET).replace("s:", "s%3A", 1)
        result = await _auth(f"{COOKIE}={value}", session_store)
        assert result.user_id == 11


class TestRejected:
    def test_close_code_is_policy_violation(self):
        assert UNAUTHORIZED_CLOSE_CODE == 1008

    @pytest.mark.asyncio
    async def test_no_header(self, session_store):
        result = await _auth(None, session_store)
        assert not result.accepted
        assert result.reason is RejectReason.MISSING_COOKIE

    @pytest.mark.asyncio
    async def test_header_without_session_cookie(self, session_store):
        result = await _auth("theme=dark", session_store)
        assert result.reason is RejectReason.MISSING_COOKIE

    @pytest.mark.asyncio
    async def test_bad_signature(self, session_store):
        session_id = await session_store.create({"user_id": 1})
        result = await _auth(f"{COOKIE}=s:{session_id}.forged", session_store)
        assert result.reason is RejectReason.INVALID_COOKIE

    @pytest.mark.asyncio
    async def test_unknown_session(self, session_store):
        result = await _auth(_header("never-created"), session_store)
        assert result.reason is RejectReason.SESSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_session_without_user(self, session_store):
        await session_store.set("anonymous", {})
        result = await _auth(_header("anonymous"), session_store)
        assert not result.accepted
        assert result.reason is RejectReason.SESSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_session_payload_lacking_user_id(self, session_store):
        await session_store.set("visitor", {"theme": "dark"})
        result = await _auth(_header("visitor"), session_store)
        assert result.reason is RejectReason.NOT_AUTHENTICATED

    @pytest.mark.asyncio
    async def test_store_error(self):
        store = AsyncMock()
        store.get.side_effect = RuntimeError("db locked")
        result = await _auth(_header("sid"), store)
        assert result.reason is RejectReason.SESSION_LOOKUP_FAILED

    @pytest.mark.asyncio
    async def test_store_timeout(self):
        class SlowStore:
            async def get(self, session_id):
                await asyncio.sleep(10)

        result = await _auth(_header("sid"), SlowStore(), timeout=0.01)
        assert result.reason is RejectReason.SESSION_LOOKUP_FAILED
