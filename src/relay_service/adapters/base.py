"""
Base adapter interface for broker backends.

All adapters must implement this interface so the relay pipeline and the
republish bridge stay backend-agnostic. Adapters move opaque bytes: decoding
is the payload normalizer's job, never the adapter's.
"""
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List

from ..models.relay import RawMessage

# Type alias for message handlers
MessageHandler = Callable[[RawMessage], Awaitable[None]]


class BrokerAdapter(ABC):
    """
    Abstract base class for broker adapters.

    This is the broker capability the relay depends on:
    subscribe(topics) -> stream of RawMessage, publish(topic, bytes) -> ack-or-error.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the broker.

        Raises:
            ConnectionError: If unable to connect to the broker
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Gracefully disconnect from the broker.

        Drops every subscription and closes the connection.
        """
        pass

    @abstractmethod
    async def publish(self, topic: str, data: bytes) -> None:
        """
        Publish raw bytes to a topic.

        Returns once the broker client accepted the message.

        Args:
            topic: The topic/subject to publish to
            data: The payload, already serialized

        Raises:
            PublishError: If the message could not be published
            ConnectionError: If not connected to the broker
        """
        pass

    @abstractmethod
    async def subscribe(
        self,
        topics: List[str],
        handler: MessageHandler,
        subscription_id: str | None = None,
    ) -> str:
        """
        Subscribe to one or more topics.

        Args:
            topics: Topic patterns (e.g., "orders.*", "restaurant.>")
            handler: Async callback receiving each RawMessage
            subscription_id: Optional identifier for this subscription

        Returns:
            Subscription ID that can be used to unsubscribe

        Raises:
            SubscriptionError: If subscription could not be created
            ConnectionError: If not connected to the broker
        """
        pass

    @abstractmethod
    async def unsubscribe(self, subscription_id: str) -> None:
        """
        Remove a subscription.

        Unknown subscription IDs are logged and ignored.
        """
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the adapter is connected to the broker."""
        pass

    @property
    def name(self) -> str:
        """Return the adapter name for logging."""
        return self.__class__.__name__


class AdapterError(Exception):
    """Base exception for adapter errors."""
    pass


class PublishError(AdapterError):
    """Raised when a message could not be published."""
    pass


class SubscriptionError(AdapterError):
    """Raised when a subscription could not be created."""
    pass
