"""
Fan-out of relay events to every connected viewer.

Each viewer owns a bounded queue. Broadcasting only enqueues, so a slow or
stalled viewer can never hold up ingestion; when its queue is full the
oldest pending event for that viewer is discarded.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from ..models.relay import RelayEvent

logger = logging.getLogger(__name__)


@dataclass
class ViewerConnection:
    """A connected viewer and its pending events."""
    connection_id: str
    viewer_id: str
    transport: str
    queue: asyncio.Queue
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    dropped: int = 0

    def offer(self, event: RelayEvent) -> None:
        """Enqueue without blocking, dropping the oldest event if full."""
        if self.queue.full():
            try:
                self.queue.get_nowait()
                self.dropped += 1
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(event)

    async def next_event(self, timeout: Optional[float] = None) -> RelayEvent:
        """
        Wait for the next event.

        Raises:
            asyncio.TimeoutError: If nothing arrived within timeout
        """
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)


class Broadcaster:
    """Registry of connected viewers and the broadcast operation over them."""

    def __init__(self, queue_size: int = 1000):
        self._queue_size = queue_size
        self.connections: Dict[str, ViewerConnection] = {}

    def register(self, viewer_id: str | None = None, transport: str = "sse") -> ViewerConnection:
        """Add a viewer; it receives every event broadcast from now on."""
        connection_id = str(uuid4())
        connection = ViewerConnection(
            connection_id=connection_id,
            viewer_id=viewer_id or connection_id,
            transport=transport,
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        self.connections[connection_id] = connection
        logger.info(
            f"Viewer {connection.viewer_id} connected via {transport} "
            f"(connection: {connection_id}, total: {len(self.connections)})"
        )
        return connection

    def unregister(self, connection_id: str) -> None:
        """Stop delivering to a viewer. Unknown ids are ignored."""
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return
        connection.cancel_event.set()
        logger.info(
            f"Viewer {connection.viewer_id} disconnected "
            f"(connection: {connection_id}, total: {len(self.connections)})"
        )

    def broadcast(self, event: RelayEvent) -> int:
        """
        Deliver an event to every connected viewer.

        Returns:
            Number of viewers the event was queued for
        """
        targets: List[ViewerConnection] = list(self.connections.values())
        for connection in targets:
            try:
                connection.offer(event)
            except Exception as e:
                logger.error(f"Error queuing event {event.id} for {connection.connection_id}: {e}")
        return len(targets)

    def close_all(self) -> None:
        """Cancel every viewer stream and forget all viewers."""
        for connection_id in list(self.connections.keys()):
            self.unregister(connection_id)
