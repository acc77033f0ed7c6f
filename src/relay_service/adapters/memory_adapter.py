"""
In-memory adapter for the Relay Service.

This adapter is primarily used for:
- Local development without a broker
- Unit testing
- Demo purposes

Messages are delivered to subscribers synchronously and never stored.
"""
import asyncio
import logging
from typing import Any, Dict, List, Set
from uuid import uuid4

from ..models.relay import RawMessage
from .base import BrokerAdapter, MessageHandler

logger = logging.getLogger(__name__)


class MemoryAdapter(BrokerAdapter):
    """
    In-memory broker adapter for development and testing.

    Features:
    - NATS-style wildcard matching ("orders.*", "restaurant.>")
    - Synchronous delivery (publish returns after every handler ran)
    - No persistence
    """

    def __init__(self):
        """Initialize the memory adapter."""
        self._connected = False
        self._subscriptions: Dict[str, Dict[str, Any]] = {}
        # Pattern -> Set of subscription IDs
        self._pattern_subs: Dict[str, Set[str]] = {}

    async def connect(self) -> None:
        """Mark adapter as connected."""
        if self._connected:
            logger.warning("Memory adapter already connected")
            return

        self._connected = True
        logger.info("Memory adapter connected (in-memory mode)")

    async def disconnect(self) -> None:
        """Disconnect and clean up subscriptions."""
        self._subscriptions.clear()
        self._pattern_subs.clear()
        self._connected = False
        logger.info("Memory adapter disconnected")

    async def publish(self, topic: str, data: bytes) -> None:
        """
        Publish raw bytes to matching subscribers.

        Handler failures are logged and never reach the publisher.
        """
        if not self._connected:
            raise ConnectionError("Memory adapter not connected")

        logger.debug(f"Publishing {len(data)} bytes to topic: {topic}")

        matching_subs = self._find_matching_subscriptions(topic)

        if not matching_subs:
            logger.debug(f"No subscribers for topic: {topic}")
            return

        message = RawMessage(topic=topic, data=bytes(data))

        delivery_tasks = [
            self._deliver_message(self._subscriptions[sub_id]["handler"], message)
            for sub_id in sorted(matching_subs)
            if sub_id in self._subscriptions
        ]

        if delivery_tasks:
            results = await asyncio.gather(*delivery_tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Error delivering message: {result}")

    async def subscribe(
        self,
        topics: List[str],
        handler: MessageHandler,
        subscription_id: str | None = None,
    ) -> str:
        """
        Subscribe to topics with pattern matching support.

        Supports wildcards:
        - "*" matches a single segment (e.g., "orders.*" matches "orders.42")
        - ">" matches any remaining segments (e.g., "restaurant.>" matches "restaurant.7096.ticket")
        """
        if not self._connected:
            raise ConnectionError("Memory adapter not connected")

        sub_id = subscription_id or str(uuid4())

        self._subscriptions[sub_id] = {
            "patterns": topics,
            "handler": handler,
        }

        for pattern in topics:
            self._pattern_subs.setdefault(pattern, set()).add(sub_id)

        logger.info(f"Subscribed to {topics} (sub_id: {sub_id})")
        return sub_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Unsubscribe from a subscription."""
        if subscription_id not in self._subscriptions:
            logger.warning(f"Subscription {subscription_id} not found")
            return

        sub_data = self._subscriptions.pop(subscription_id)

        for pattern in sub_data["patterns"]:
            if pattern in self._pattern_subs:
                self._pattern_subs[pattern].discard(subscription_id)
                if not self._pattern_subs[pattern]:
                    del self._pattern_subs[pattern]

        logger.info(f"Unsubscribed: {subscription_id}")

    @property
    def is_connected(self) -> bool:
        """Check if adapter is connected."""
        return self._connected

    def _find_matching_subscriptions(self, topic: str) -> Set[str]:
        """Find all subscriptions with at least one pattern matching the topic."""
        matching = set()

        for pattern, sub_ids in self._pattern_subs.items():
            if self._pattern_matches(pattern, topic):
                matching.update(sub_ids)

        return matching

    def _pattern_matches(self, pattern: str, topic: str) -> bool:
        """
        Check if a pattern matches a topic.

        Tokens are separated by "."; "*" matches exactly one token and a
        trailing ">" matches one or more tokens.
        """
        if pattern == topic:
            return True

        pattern_parts = pattern.split(".")
        topic_parts = topic.split(".")

        if pattern_parts[-1] == ">":
            prefix_pattern = pattern_parts[:-1]
            if len(topic_parts) <= len(prefix_pattern):
                return False
            for i, p in enumerate(prefix_pattern):
                if p != "*" and p != topic_parts[i]:
                    return False
            return True

        if len(pattern_parts) != len(topic_parts):
            return False

        for p, t in zip(pattern_parts, topic_parts):
            if p != "*" and p != t:
                return False

        return True

    async def _deliver_message(self, handler: MessageHandler, message: RawMessage) -> None:
        """Deliver a message to a handler."""
        try:
            await handler(message)
        except Exception as e:
            logger.error(f"Handler error for topic {message.topic}: {e}")
            raise
