"""
NATS adapter for the Relay Service.

This adapter implements the BrokerAdapter interface using NATS Core
as the underlying broker.
"""
import logging
import ssl
from typing import Dict, List, Optional
from uuid import uuid4

import nats
from nats.aio.client import Client as NatsClient
from nats.aio.msg import Msg
from nats.aio.subscription import Subscription

from ..models.relay import RawMessage
from .base import BrokerAdapter, MessageHandler, PublishError, SubscriptionError

logger = logging.getLogger(__name__)


def build_tls_context(
    ca_file: Optional[str] = None,
    cert_file: Optional[str] = None,
    key_file: Optional[str] = None,
) -> Optional[ssl.SSLContext]:
    """
    Build a client TLS context from certificate files.

    Returns None when no CA file is configured. A client certificate is
    loaded only when both cert_file and key_file are given.

    Raises:
        ConnectionError: If a certificate file cannot be loaded
    """
    if not ca_file:
        return None

    try:
        context = ssl.create_default_context(cafile=ca_file)
        if cert_file and key_file:
            context.load_cert_chain(certfile=cert_file, keyfile=key_file)
    except (OSError, ssl.SSLError) as e:
        logger.error(
            f"Error loading certificates (CA: {ca_file}, cert: {cert_file}, key: {key_file}): {e}"
        )
        raise ConnectionError(f"Failed to load TLS certificates: {e}") from e

    logger.info("TLS certificates loaded")
    return context


class NatsAdapter(BrokerAdapter):
    """
    NATS adapter for the Relay Service.

    Features:
    - Automatic reconnection
    - Optional mutual TLS
    - User/password or token authentication
    - Wildcard subscriptions (e.g., "orders.*", "restaurant.>")
    - Raw byte delivery (payloads are never decoded here)
    """

    def __init__(
        self,
        url: str = "nats://localhost:4222",
        reconnect_time_wait: int = 1,
        max_reconnect_attempts: int = -1,
        subject_prefix: str = "",
        tls_context: Optional[ssl.SSLContext] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
    ):
        """
        Initialize the NATS adapter.

        Args:
            url: NATS server URL
            reconnect_time_wait: Time to wait between reconnection attempts (seconds)
            max_reconnect_attempts: Max reconnection attempts (-1 for infinite)
            subject_prefix: Namespace prepended to every topic ("" for none)
            tls_context: Client TLS context, or None for plaintext
            user: Username for user/password authentication
            password: Password for user/password authentication
            token: Token for token authentication
        """
        self._url = url
        self._reconnect_time_wait = reconnect_time_wait
        self._max_reconnect_attempts = max_reconnect_attempts
        self._subject_prefix = subject_prefix
        self._tls_context = tls_context
        self._user = user
        self._password = password
        self._token = token
        self._client: NatsClient | None = None
        self._subscriptions: Dict[str, Subscription] = {}

    async def connect(self) -> None:
        """Connect to NATS server with auto-reconnection."""
        if self._client is not None and self._client.is_connected:
            logger.warning("Already connected to NATS")
            return

        logger.info(f"Connecting to NATS at {self._url} (TLS: {self._tls_context is not None})")

        options = {}
        if self._tls_context is not None:
            options["tls"] = self._tls_context
        if self._user:
            options["user"] = self._user
            options["password"] = self._password
        if self._token:
            options["token"] = self._token

        try:
            self._client = await nats.connect(
                servers=[self._url],
                reconnect_time_wait=self._reconnect_time_wait,
                max_reconnect_attempts=self._max_reconnect_attempts,
                error_cb=self._error_callback,
                disconnected_cb=self._disconnected_callback,
                reconnected_cb=self._reconnected_callback,
                closed_cb=self._closed_callback,
                **options,
            )
            logger.info(f"Connected to NATS server: {self._client.connected_url}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise ConnectionError(f"Failed to connect to NATS at {self._url}: {e}") from e

    async def disconnect(self) -> None:
        """Gracefully disconnect from NATS."""
        if self._client is None:
            return

        logger.info("Disconnecting from NATS")

        for sub_key in list(self._subscriptions.keys()):
            sub = self._subscriptions.pop(sub_key)
            try:
                await sub.unsubscribe()
            except Exception as e:
                logger.warning(f"Error unsubscribing from {sub_key}: {e}")

        # Drain and close
        try:
            await self._client.drain()
        except Exception as e:
            logger.warning(f"Error draining NATS connection: {e}")

        self._client = None
        logger.info("Disconnected from NATS")

    async def publish(self, topic: str, data: bytes) -> None:
        """
        Publish raw bytes to a NATS subject and flush.

        The flush round-trips to the server so that a dead connection is
        reported to the caller instead of being buffered silently.
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to NATS")

        subject = self._topic_to_subject(topic)

        try:
            await self._client.publish(subject, data)
            await self._client.flush()
            logger.debug(f"Published {len(data)} bytes to {subject}")
        except Exception as e:
            logger.error(f"Failed to publish to {subject}: {e}")
            raise PublishError(f"Failed to publish to {subject}: {e}") from e

    async def subscribe(
        self,
        topics: List[str],
        handler: MessageHandler,
        subscription_id: str | None = None,
    ) -> str:
        """
        Subscribe to one or more NATS subjects.

        Args:
            topics: List of topics (supports NATS wildcards: *, >)
            handler: Async callback receiving a RawMessage
            subscription_id: Optional subscription identifier

        Returns:
            Subscription ID
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to NATS")

        sub_id = subscription_id or str(uuid4())

        async def nats_handler(msg: Msg) -> None:
            try:
                raw = RawMessage(topic=self._subject_to_topic(msg.subject), data=msg.data)
                await handler(raw)
            except Exception as e:
                logger.error(f"Error in message handler for {msg.subject}: {e}")

        for topic in topics:
            subject = self._topic_to_subject(topic)
            try:
                sub = await self._client.subscribe(subject, cb=nats_handler)
                self._subscriptions[f"{sub_id}:{subject}"] = sub
                logger.info(f"Subscribed to {subject} (sub_id: {sub_id})")
            except Exception as e:
                logger.error(f"Failed to subscribe to {subject}: {e}")
                await self._cleanup_partial_subscription(sub_id)
                raise SubscriptionError(f"Failed to subscribe to {subject}: {e}") from e

        return sub_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Unsubscribe from a subscription."""
        keys_to_remove = [k for k in self._subscriptions.keys() if k.startswith(f"{subscription_id}:")]

        if not keys_to_remove:
            logger.warning(f"No subscriptions found for {subscription_id}")
            return

        for key in keys_to_remove:
            sub = self._subscriptions.pop(key)
            try:
                await sub.unsubscribe()
                logger.info(f"Unsubscribed from {key}")
            except Exception as e:
                logger.warning(f"Error unsubscribing from {key}: {e}")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS."""
        return self._client is not None and self._client.is_connected

    def _topic_to_subject(self, topic: str) -> str:
        """
        Convert topic name to NATS subject.

        Examples (prefix "relay"):
            "orders.42" -> "relay.orders.42"
            ">" -> "relay.>"
        """
        if self._subject_prefix:
            return f"{self._subject_prefix}.{topic}"
        return topic

    def _subject_to_topic(self, subject: str) -> str:
        """Convert NATS subject back to topic name."""
        prefix = f"{self._subject_prefix}." if self._subject_prefix else ""
        if prefix and subject.startswith(prefix):
            return subject[len(prefix):]
        return subject

    async def _cleanup_partial_subscription(self, sub_id: str) -> None:
        """Clean up partial subscriptions on failure."""
        keys_to_remove = [k for k in self._subscriptions.keys() if k.startswith(f"{sub_id}:")]
        for key in keys_to_remove:
            sub = self._subscriptions.pop(key)
            try:
                await sub.unsubscribe()
            except Exception as e:
                logger.debug(f"Ignoring unsubscribe error for {key}: {e}")

    # NATS callbacks for connection lifecycle

    async def _error_callback(self, e: Exception) -> None:
        """Called on NATS errors."""
        logger.error(f"NATS error: {e}")

    async def _disconnected_callback(self) -> None:
        """Called when disconnected from NATS."""
        logger.warning("Disconnected from NATS server")

    async def _reconnected_callback(self) -> None:
        """Called when reconnected to NATS."""
        logger.info(f"Reconnected to NATS server: {self._client.connected_url}")

    async def _closed_callback(self) -> None:
        """Called when NATS connection is closed."""
        logger.info("NATS connection closed")
