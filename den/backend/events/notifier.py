"""
Change Notifier.

Registry of connected stream clients and fan-out of change events.

The registry is a plain dict touched only from the event loop. Broadcast
iterates a snapshot, so connections may come and go mid-broadcast. A
connection whose send fails or times out is dropped; the failure never
reaches the caller.

Usage:
    notifier = ChangeNotifier(send_timeout=5.0)
    connection_id = notifier.register(websocket)
    delivered = await notifier.broadcast(event)
    notifier.unregister(connection_id)
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from den.backend.core.logging import get_logger
from den.backend.core.utils import utc_now
from den.backend.events.schemas import NoteEvent

logger = get_logger(__name__)


class Connection(Protocol):
    """Anything that can receive a text frame (Starlette WebSocket, test fakes)."""

    async def send_text(self, data: str) -> None: ...


@dataclass
class ConnectionInfo:
    """A registered connection and when it joined."""

    connection: Connection
    connected_at: datetime = field(default_factory=utc_now)


class ChangeNotifier:
    """Holds connected clients and broadcasts events to all of them."""

    def __init__(self, send_timeout: float = 5.0) -> None:
        self.send_timeout = send_timeout
        self._connections: dict[str, ConnectionInfo] = {}

    @property
    def client_count(self) -> int:
        return len(self._connections)

    def register(self, connection: Connection) -> str:
        """Add a connection. Returns the id used to unregister it."""
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = ConnectionInfo(connection=connection)
        logger.info(
            "Stream client connected",
            extra={"connection_id": connection_id, "clients": self.client_count},
        )
        return connection_id

    def unregister(self, connection_id: str) -> None:
        """Remove a connection. Unknown ids are ignored."""
        if self._connections.pop(connection_id, None) is not None:
            logger.info(
                "Stream client disconnected",
                extra={"connection_id": connection_id, "clients": self.client_count},
            )

    async def _send(self, connection_id: str, info: ConnectionInfo, message: str) -> bool:
        try:
            await asyncio.wait_for(info.connection.send_text(message), timeout=self.send_timeout)
            return True
        except Exception as e:
            logger.warning(
                "Dropping stream client after failed send",
                extra={
                    "connection_id": connection_id,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            self.unregister(connection_id)
            return False

    async def broadcast(self, event: NoteEvent) -> int:
        """
        Send an event to every connected client.

        Returns:
            Number of clients the event was delivered to
        """
        snapshot = list(self._connections.items())
        if not snapshot:
            return 0

        message = event.to_json()
        results = await asyncio.gather(
            *(self._send(connection_id, info, message) for connection_id, info in snapshot)
        )
        delivered = sum(1 for ok in results if ok)

        logger.debug(
            "Event broadcast",
            extra={
                "event_type": event.type.value,
                "note_id": event.note.id,
                "delivered": delivered,
                "attempted": len(snapshot),
            },
        )
        return delivered
