"""Session cookie codec.

The session cookie value is ``s:<session_id>.<signature>``, optionally
URL-encoded by the client (``s%3A...``).  The HTTP dependency and the
WebSocket handshake both go through ``unsign_session_cookie`` so the same
cookie value always resolves to the same session id.

Provides:
- ``parse_cookie_header(header)``: raw ``Cookie`` header -> ``{name: value}``.
- ``sign_session_id(session_id, secret)``: build the cookie value.
- ``unsign_session_cookie(value, secret)``: cookie value -> session id or ``None``.
"""

from __future__ import annotations

from urllib.parse import unquote

from itsdangerous import BadSignature, Signer
from starlette.requests import cookie_parser

COOKIE_PREFIX = "s:"
SIGNER_SALT = "taskflow.session"


def _signer(secret: str) -> Signer:
    return Signer(secret, salt=SIGNER_SALT)


def parse_cookie_header(header: str | None) -> dict[str, str]:
    """Split a raw ``k=v; k2=v2`` header into a dict.

    A missing or empty header yields an empty dict.
    """
    if not header:
        return {}
    return cookie_parser(header)


def sign_session_id(session_id: str, secret: str) -> str:
    """Return the cookie value for *session_id*."""
    return COOKIE_PREFIX + _signer(secret).sign(session_id).decode("utf-8")


def unsign_session_cookie(value: str | None, secret: str) -> str | None:
    """Strip the ``s:`` prefix and verify the signature suffix.

    Returns the bare session id, or ``None`` when the value is empty, lacks
    the prefix, or carries a signature that does not verify.
    """
    if not value:
        return None
    value = unquote(value)
    if not value.startswith(COOKIE_PREFIX):
        return None
    try:
        session_id = _signer(secret).unsign(value[len(COOKIE_PREFIX):])
    except BadSignature:
        return None
    return session_id.decode("utf-8") or None
