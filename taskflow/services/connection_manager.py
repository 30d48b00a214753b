"""WebSocket connection registry.

Single instance created in the ``main.py`` lifespan and stored on
``app.state.connection_manager``.  Maps user IDs to their live connections
(supports multiple tabs/devices per user).

Registry operations are plain synchronous methods: they never suspend, so
concurrent handshakes and disconnects cannot interleave inside one of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import uuid4

from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    """One authenticated socket.  Equality is identity."""

    user_id: int
    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )


class ConnectionManager:
    """Tracks live connections per user."""

    def __init__(self) -> None:
        self._connections: dict[int, list[Connection]] = {}

    def __len__(self) -> int:
        return sum(len(conns) for conns in self._connections.values())

    def register(self, connection: Connection) -> None:
        """Add *connection* under its user id."""
        self._connections.setdefault(connection.user_id, []).append(connection)
        logger.debug(
            "Registered connection %s for user %s", connection.connection_id, connection.user_id
        )

    def unregister(self, connection: Connection) -> None:
        """Remove exactly *connection*.

        Safe to call even if the user or connection is not tracked.
        """
        conns = self._connections.get(connection.user_id)
        if conns is None:
            return
        for index, existing in enumerate(conns):
            if existing is connection:
                del conns[index]
                break
        if not conns:
            del self._connections[connection.user_id]

    def connections_for(self, user_id: int) -> list[Connection]:
        return list(self._connections.get(user_id, ()))

    def all(self) -> list[Connection]:
        return [conn for conns in self._connections.values() for conn in conns]

    async def close_all(self, code: int = 1001) -> None:
        """Close and forget every connection (application shutdown)."""
        connections = self.all()
        self._connections.clear()
        for connection in connections:
            try:
                await connection.websocket.close(code=code)
            except Exception:
                logger.debug("Connection %s already closed", connection.connection_id)
