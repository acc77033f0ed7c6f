"""
Event composition: one RawMessage plus its DecodedPayload becomes one RelayEvent.
"""
import time
from typing import Optional

from ..models.relay import DecodedPayload, RawMessage, RelayEvent
from .colors import color_for
from .correlation import DEFAULT_MAX_DEPTH, resolve


class EventIdFactory:
    """
    Strictly increasing event ids based on the nanosecond wall clock.

    Two calls within the same clock tick, or across a backwards clock step,
    still get distinct, increasing ids.
    """

    def __init__(self):
        self._last = 0

    def next_id(self) -> int:
        candidate = time.time_ns()
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return candidate


# Global instance
event_ids = EventIdFactory()


def compose(
    raw: RawMessage,
    decoded: DecodedPayload,
    *,
    event_id: Optional[int] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> RelayEvent:
    """
    Assemble the RelayEvent for a normalized message.

    ``size`` is the wire length of the original bytes, not the decompressed
    length.
    """
    correlation_id = resolve(decoded.structured, max_depth=max_depth)

    return RelayEvent(
        id=event_id if event_id is not None else event_ids.next_id(),
        topic=raw.topic,
        size=len(raw.data),
        is_compressed=decoded.is_compressed,
        time=raw.received_at.isoformat(),
        raw=decoded.text,
        parsed=decoded.structured,
        correlation_id=correlation_id,
        color_key=color_for(correlation_id),
    )
