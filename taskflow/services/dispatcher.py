"""Fan-out of events to registered WebSocket connections.

Delivery is best-effort and at-most-once: each event is serialised once, a
closed or failing socket is skipped (and unregistered), and nothing is
reported back to the caller beyond the number of successful sends.
"""

from __future__ import annotations

import logging

from taskflow.services.connection_manager import Connection, ConnectionManager
from taskflow.services.ws_messages import Event

logger = logging.getLogger(__name__)


class Dispatcher:
    """Pushes serialised events to connections held by a ``ConnectionManager``."""

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager

    async def _deliver(self, connection: Connection, text: str) -> bool:
        if not connection.is_open:
            return False
        try:
            await connection.websocket.send_text(text)
        except Exception as exc:
            logger.debug(
                "Dropping send to connection %s (user %s): %s",
                connection.connection_id,
                connection.user_id,
                exc,
            )
            self.manager.unregister(connection)
            return False
        return True

    async def broadcast(self, event: Event, exclude_user_id: int | None = None) -> int:
        """Send *event* to every open connection, skipping *exclude_user_id*'s."""
        text = event.to_json()
        delivered = 0
        for connection in self.manager.all():
            if exclude_user_id is not None and connection.user_id == exclude_user_id:
                continue
            if await self._deliver(connection, text):
                delivered += 1
        logger.debug("Broadcast %s to %d connection(s)", event.type, delivered)
        return delivered

    async def send_to_user(self, user_id: int, event: Event) -> int:
        """Send *event* to all of *user_id*'s open connections (none is fine)."""
        text = event.to_json()
        delivered = 0
        for connection in self.manager.connections_for(user_id):
            if await self._deliver(connection, text):
                delivered += 1
        return delivered

    async def send_to_connection(self, connection: Connection, event: Event) -> bool:
        return await self._deliver(connection, event.to_json())
