"""WebSocket handshake authentication.

``authenticate_cookie_header`` turns a raw ``Cookie`` header into either a
resolved user id or a tagged rejection reason.  It has no knowledge of the
socket itself; the ``/ws`` endpoint closes with ``UNAUTHORIZED_CLOSE_CODE``
on any rejection.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass

from starlette.status import WS_1008_POLICY_VIOLATION

from taskflow.services.session_cookie import parse_cookie_header, unsign_session_cookie

logger = logging.getLogger(__name__)

UNAUTHORIZED_CLOSE_CODE = WS_1008_POLICY_VIOLATION


class RejectReason(str, enum.Enum):
    MISSING_COOKIE = "missing_cookie"
    INVALID_COOKIE = "invalid_cookie"
    SESSION_LOOKUP_FAILED = "session_lookup_failed"
    SESSION_NOT_FOUND = "session_not_found"
    NOT_AUTHENTICATED = "not_authenticated"


@dataclass(frozen=True)
class HandshakeResult:
    user_id: int | None = None
    reason: RejectReason | None = None

    @property
    def accepted(self) -> bool:
        return self.user_id is not None


async def authenticate_cookie_header(
    cookie_header: str | None,
    session_store,
    *,
    secret: str,
    cookie_name: str,
    timeout: float | None = None,
) -> HandshakeResult:
    """Resolve the session cookie in *cookie_header* to a user id.

    Steps: parse the header, find *cookie_name*, strip and verify the signed
    envelope, look the session up in *session_store* (bounded by *timeout*),
    and require a ``user_id`` in the session payload.
    """
    cookies = parse_cookie_header(cookie_header)
    raw_value = cookies.get(cookie_name)
    if not raw_value:
        return HandshakeResult(reason=RejectReason.MISSING_COOKIE)

    session_id = unsign_session_cookie(raw_value, secret)
    if session_id is None:
        return HandshakeResult(reason=RejectReason.INVALID_COOKIE)

    try:
        session = await asyncio.wait_for(session_store.get(session_id), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Session lookup timed out during WebSocket handshake")
        return HandshakeResult(reason=RejectReason.SESSION_LOOKUP_FAILED)
    except Exception:
        logger.exception("Session lookup failed during WebSocket handshake")
        return HandshakeResult(reason=RejectReason.SESSION_LOOKUP_FAILED)

    if not session:
        return HandshakeResult(reason=RejectReason.SESSION_NOT_FOUND)

    user_id = session.get("user_id")
    if user_id is None:
        return HandshakeResult(reason=RejectReason.NOT_AUTHENTICATED)

    return HandshakeResult(user_id=user_id)
