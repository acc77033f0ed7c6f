"""
Tests for the NATS adapter that do not need a running server.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from relay_service.adapters.base import PublishError, SubscriptionError
from relay_service.adapters.nats_adapter import NatsAdapter, build_tls_context


def connected_adapter(**kwargs) -> NatsAdapter:
    adapter = NatsAdapter(**kwargs)
    client = MagicMock()
    client.is_connected = True
    client.publish = AsyncMock()
    client.flush = AsyncMock()
    client.subscribe = AsyncMock(return_value=MagicMock(unsubscribe=AsyncMock()))
    client.drain = AsyncMock()
    adapter._client = client
    return adapter


class TestSubjects:
    """Tests for topic <-> subject mapping."""

    def test_no_prefix(self):
        adapter = NatsAdapter()
        assert adapter._topic_to_subject("orders.42") == "orders.42"
        assert adapter._subject_to_topic("orders.42") == "orders.42"

    def test_prefix(self):
        adapter = NatsAdapter(subject_prefix="relay")
        assert adapter._topic_to_subject("orders.42") == "relay.orders.42"
        assert adapter._subject_to_topic("relay.orders.42") == "orders.42"
        assert adapter._subject_to_topic("other.orders") == "other.orders"


class TestPublish:
    """Tests for publish()."""

    async def test_requires_connection(self):
        with pytest.raises(ConnectionError):
            await NatsAdapter().publish("orders.1", b"{}")

    async def test_publishes_raw_bytes_and_flushes(self):
        adapter = connected_adapter(subject_prefix="relay")

        await adapter.publish("orders.1", b'{"ticketId":1}')

        adapter._client.publish.assert_awaited_once_with("relay.orders.1", b'{"ticketId":1}')
        adapter._client.flush.assert_awaited_once()

    async def test_client_errors_become_publish_errors(self):
        adapter = connected_adapter()
        adapter._client.flush.side_effect = TimeoutError("nats: flush timeout")

        with pytest.raises(PublishError) as exc_info:
            await adapter.publish("orders.1", b"{}")

        assert "nats: flush timeout" in str(exc_info.value)


class TestSubscribe:
    """Tests for subscribe()."""

    async def test_delivers_raw_messages(self):
        adapter = connected_adapter(subject_prefix="relay")
        received = []

        async def handler(raw):
            received.append(raw)

        sub_id = await adapter.subscribe(["orders.>"], handler)

        subject = adapter._client.subscribe.await_args.args[0]
        callback = adapter._client.subscribe.await_args.kwargs["cb"]
        assert subject == "relay.orders.>"
        assert sub_id

        await callback(MagicMock(subject="relay.orders.7", data=b"\x1f\x8b..."))

        assert len(received) == 1
        assert received[0].topic == "orders.7"
        assert received[0].data == b"\x1f\x8b..."

    async def test_handler_errors_are_contained(self):
        adapter = connected_adapter()

        async def handler(raw):
            raise RuntimeError("boom")

        await adapter.subscribe(["orders.>"], handler)
        callback = adapter._client.subscribe.await_args.kwargs["cb"]

        await callback(MagicMock(subject="orders.7", data=b"{}"))

    async def test_failed_subscription(self):
        adapter = connected_adapter()
        adapter._client.subscribe.side_effect = RuntimeError("permissions violation")

        async def handler(raw):
            pass

        with pytest.raises(SubscriptionError):
            await adapter.subscribe(["orders.>"], handler)

    async def test_unsubscribe(self):
        adapter = connected_adapter()

        async def handler(raw):
            pass

        sub_id = await adapter.subscribe(["a", "b"], handler)
        assert len(adapter._subscriptions) == 2

        await adapter.unsubscribe(sub_id)
        assert adapter._subscriptions == {}


class TestConnect:
    """Tests for connect() and disconnect()."""

    async def test_connect_failure_raises_connection_error(self):
        with patch("relay_service.adapters.nats_adapter.nats.connect", AsyncMock(side_effect=OSError("refused"))):
            with pytest.raises(ConnectionError):
                await NatsAdapter(url="nats://nowhere:4222").connect()

    async def test_tls_context_is_passed(self):
        tls = MagicMock()
        connect = AsyncMock(return_value=MagicMock(is_connected=True, connected_url="tls://broker"))
        with patch("relay_service.adapters.nats_adapter.nats.connect", connect):
            await NatsAdapter(url="tls://broker:4222", tls_context=tls).connect()

        assert connect.await_args.kwargs["tls"] is tls

    async def test_credentials_are_passed(self):
        connect = AsyncMock(return_value=MagicMock(is_connected=True, connected_url="nats://broker"))
        with patch("relay_service.adapters.nats_adapter.nats.connect", connect):
            await NatsAdapter(url="nats://broker:4222", user="relay", password="s3cret").connect()

        assert connect.await_args.kwargs["user"] == "relay"
        assert connect.await_args.kwargs["password"] == "s3cret"
        assert "token" not in connect.await_args.kwargs

    async def test_token_is_passed(self):
        connect = AsyncMock(return_value=MagicMock(is_connected=True, connected_url="nats://broker"))
        with patch("relay_service.adapters.nats_adapter.nats.connect", connect):
            await NatsAdapter(url="nats://broker:4222", token="t0ken").connect()

        assert connect.await_args.kwargs["token"] == "t0ken"
        assert "user" not in connect.await_args.kwargs

    async def test_anonymous_by_default(self):
        connect = AsyncMock(return_value=MagicMock(is_connected=True, connected_url="nats://broker"))
        with patch("relay_service.adapters.nats_adapter.nats.connect", connect):
            await NatsAdapter(url="nats://broker:4222").connect()

        assert not {"user", "password", "token", "tls"} & set(connect.await_args.kwargs)

    async def test_disconnect_drains(self):
        adapter = connected_adapter()
        client = adapter._client

        await adapter.disconnect()

        client.drain.assert_awaited_once()
        assert not adapter.is_connected


class TestTlsContext:
    """Tests for build_tls_context()."""

    def test_no_ca_means_plaintext(self):
        assert build_tls_context() is None

    def test_missing_files(self, tmp_path):
        with pytest.raises(ConnectionError):
            build_tls_context(ca_file=str(tmp_path / "missing-ca.crt"))
