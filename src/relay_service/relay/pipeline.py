"""
Ingestion pipeline: broker messages in, broadcast relay events out.

Adapter callbacks only enqueue. A single worker drains the queue, so
messages are normalized, composed and broadcast one at a time in arrival
order, and a bad payload costs only itself.
"""
import asyncio
import logging
from typing import Optional

from ..models.relay import RawMessage, RelayEvent
from .broadcaster import Broadcaster
from .composer import compose
from .correlation import DEFAULT_MAX_DEPTH
from .payload import PayloadDecodeError, normalize

logger = logging.getLogger(__name__)


class RelayPipeline:
    """Single ingestion stream from the broker to the broadcaster."""

    def __init__(self, broadcaster: Broadcaster, max_depth: int = DEFAULT_MAX_DEPTH):
        self.broadcaster = broadcaster
        self.max_depth = max_depth
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

        self.received = 0
        self.dropped = 0
        self.relayed = 0

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Start the ingestion worker."""
        if self.is_running:
            logger.warning("Relay pipeline is already running")
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name="relay-ingestion")
        logger.info("Relay pipeline started")

    async def stop(self) -> None:
        """Stop the worker; messages still queued are discarded."""
        if self._worker is None:
            return

        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

        discarded = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            discarded += 1
        self._queue = None
        if discarded:
            logger.warning(f"Discarded {discarded} queued message(s) on shutdown")

        logger.info("Relay pipeline stopped")

    async def on_message(self, raw: RawMessage) -> None:
        """Adapter callback: queue a message for ingestion."""
        self.received += 1
        if self._queue is None:
            self.dropped += 1
            logger.warning(f"Relay pipeline not running, dropped message on {raw.topic}")
            return
        self._queue.put_nowait(raw)

    async def wait_idle(self) -> None:
        """Wait until every queued message has been processed."""
        if self._queue is not None:
            await self._queue.join()

    def process(self, raw: RawMessage) -> Optional[RelayEvent]:
        """
        Normalize, compose and broadcast one message.

        Returns:
            The broadcast event, or None if the payload could not be decoded
        """
        try:
            decoded = normalize(raw.data)
        except PayloadDecodeError as e:
            self.dropped += 1
            logger.warning(f"Dropped message on {raw.topic} ({len(raw.data)} bytes): {e}")
            return None

        event = compose(raw, decoded, max_depth=self.max_depth)
        viewers = self.broadcaster.broadcast(event)
        self.relayed += 1

        logger.info(
            f"Message received on {event.topic}: {event.size} bytes, "
            f"compressed={event.is_compressed}, ticket={event.correlation_id}, viewers={viewers}"
        )
        return event

    async def _run(self) -> None:
        while True:
            raw = await self._queue.get()
            try:
                self.process(raw)
            except Exception:
                logger.exception(f"Unexpected error relaying message on {raw.topic}")
            finally:
                self._queue.task_done()
