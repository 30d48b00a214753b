"""WebSocket endpoint for real-time server-push events.

Provides:
- ``WS /ws``: authenticates with the session cookie sent on the upgrade
  request, registers the connection, sends ``connected``, then listens
  until the client goes away.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from taskflow.config import get_settings
from taskflow.services import ws_messages
from taskflow.services.connection_manager import Connection
from taskflow.services.handshake import UNAUTHORIZED_CLOSE_CODE, authenticate_cookie_header

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Inbound frames
# ---------------------------------------------------------------------------


def _handle_client_frame(connection: Connection, text: str | None) -> None:
    """Parse an inbound frame and log it.  Clients have nothing to ask for yet."""
    if text is None:
        logger.debug("Discarding non-text frame from user %s", connection.user_id)
        return
    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed frame from user %s", connection.user_id)
        return
    logger.debug("Frame from user %s: %r", connection.user_id, message)


# ---------------------------------------------------------------------------
# WS /ws
# ---------------------------------------------------------------------------


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint: authenticate, accept, register, receive loop.

    1. Resolve the session cookie to a user id
    2. Accept the upgrade (then close with 1008 if step 1 failed)
    3. Register with the connection manager
    4. Send ``connected`` to this connection only
    5. Receive loop (frames are logged and ignored)
    6. On disconnect: unregister
    """
    settings = get_settings()
    state = websocket.app.state

    # --- Auth ---
    result = await authenticate_cookie_header(
        websocket.headers.get("cookie"),
        state.session_store,
        secret=settings.session_secret,
        cookie_name=settings.session_cookie_name,
        timeout=settings.handshake_timeout_seconds,
    )
    # Accept before closing: a close sent pre-accept becomes an HTTP 403
    # response, not a 1008 close frame.
    await websocket.accept()
    if not result.accepted:
        logger.info("Rejected WebSocket handshake: %s", result.reason.value)
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason="Unauthorized")
        return

    # --- Register ---
    # is_open only reflects states seen so far (client_state is refreshed on
    # receive). A client that left during the lookup is dropped by the
    # dispatcher on the first failed send.
    connection = Connection(user_id=result.user_id, websocket=websocket)
    if not connection.is_open:
        return
    state.connection_manager.register(connection)
    logger.info("User %s connected (%s)", connection.user_id, connection.connection_id)

    # --- Receive loop ---
    try:
        await state.dispatcher.send_to_connection(
            connection, ws_messages.connected(user_id=connection.user_id)
        )
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            _handle_client_frame(connection, message.get("text"))
    except WebSocketDisconnect:
        pass
    finally:
        # --- Cleanup ---
        state.connection_manager.unregister(connection)
        logger.info("User %s disconnected (%s)", connection.user_id, connection.connection_id)
