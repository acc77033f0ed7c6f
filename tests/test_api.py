"""
Tests for the Relay Service API endpoints.
"""
import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from starlette.websockets import WebSocketDisconnect

from relay_service.adapters.memory_adapter import MemoryAdapter
from relay_service.main import app
from relay_service.services.relay_manager import relay_manager


@pytest.fixture
def client():
    """Create a test client with lifespan (memory adapter)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def async_client():
    """Create an async test client with the relay started on a memory adapter."""
    await relay_manager.initialize(adapter=MemoryAdapter())
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await relay_manager.shutdown()


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["adapter"] == "MemoryAdapter"
        assert data["connected"] is True
        assert data["active_viewers"] == 0
        assert set(data["pipeline"]) == {"received", "relayed", "dropped", "pending"}


class TestRootEndpoint:
    """Tests for root info endpoint."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["service"] == "relay-service"
        assert "version" in data


class TestRepublishEndpoint:
    """Tests for the HTTP republish endpoint."""

    def test_republish_text(self, client):
        response = client.post("/v1/events/republish", json={"topic": "orders.1", "payload": "hello"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "topic": "orders.1"}

    def test_republish_structured(self, client):
        response = client.post(
            "/v1/events/republish",
            json={"topic": "orders.42", "payload": {"ticket": {"id": 42}}},
        )

        assert response.json() == {"success": True, "topic": "orders.42"}

    def test_republish_missing_topic(self, client):
        response = client.post("/v1/events/republish", json={"topic": "", "payload": "x"})

        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "Invalid topic or payload"}

    def test_republish_missing_payload(self, client):
        response = client.post("/v1/events/republish", json={"topic": "orders.1"})
        assert response.json()["success"] is False

    @pytest.mark.parametrize("body", [
        {"topic": 5, "payload": "x"},
        {"topic": ["orders"], "payload": "x"},
        [{"topic": "orders.1", "payload": "x"}],
        "orders.1",
    ])
    def test_republish_body_of_the_wrong_shape(self, client, body):
        response = client.post("/v1/events/republish", json=body)

        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "Invalid topic or payload"}

    def test_republish_body_not_json(self, client):
        response = client.post(
            "/v1/events/republish",
            content=b"topic=orders.1",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is False


class TestStreamEndpoint:
    """Tests for the SSE endpoint outside of a running service."""

    def test_stream_unavailable_without_broker(self):
        # No lifespan: the broker adapter is not connected
        response = TestClient(app).get("/v1/events/stream")
        assert response.status_code == 503


class TestWebSocket:
    """Tests for the WebSocket viewer session."""

    def test_connected_frame(self, client):
        with client.websocket_connect("/v1/events/ws?viewer_id=ui") as websocket:
            frame = websocket.receive_json()

            assert frame["event"] == "connected"
            assert frame["data"]["viewer_id"] == "ui"

    def test_republish_round_trip(self, client):
        with client.websocket_connect("/v1/events/ws") as websocket:
            websocket.receive_json()

            websocket.send_json({
                "event": "republish-mqtt",
                "data": {"topic": "orders.42", "payload": {"ticket": {"id": 42}}},
            })
            frames = {}
            for _ in range(2):
                frame = websocket.receive_json()
                frames[frame["event"]] = frame["data"]

        assert frames["republish-result"] == {"success": True, "topic": "orders.42"}
        event = frames["mqtt-event"]
        assert event["topic"] == "orders.42"
        assert event["correlationId"] == 42
        assert event["isCompressed"] is False
        assert event["colorKey"]["neutral"] is False
        assert event["parsed"] == {"ticket": {"id": 42}}

    def test_invalid_republish_goes_to_sender_only(self, client):
        with client.websocket_connect("/v1/events/ws") as sender, \
                client.websocket_connect("/v1/events/ws") as other:
            sender.receive_json()
            other.receive_json()

            sender.send_json({"event": "republish-mqtt", "data": {"topic": "", "payload": "x"}})
            result = sender.receive_json()

            assert result == {
                "event": "republish-result",
                "data": {"success": False, "error": "Invalid topic or payload"},
            }

            # The other viewer only ever sees relay events
            client.post("/v1/events/republish", json={"topic": "orders.1", "payload": {"ticketId": 1}})
            frame = other.receive_json()
            assert frame["event"] == "mqtt-event"
            assert frame["data"]["correlationId"] == 1

    def test_malformed_frame(self, client):
        with client.websocket_connect("/v1/events/ws") as websocket:
            websocket.receive_json()
            websocket.send_text("not json")

            frame = websocket.receive_json()
            assert frame["event"] == "republish-result"
            assert frame["data"]["success"] is False

    def test_binary_frame(self, client):
        with client.websocket_connect("/v1/events/ws") as websocket:
            websocket.receive_json()
            websocket.send_bytes(b"\x1f\x8b\x00")

            frame = websocket.receive_json()
            assert frame == {
                "event": "republish-result",
                "data": {"success": False, "error": "Malformed frame"},
            }

            # The session survives the bad frame
            websocket.send_json({"event": "republish-mqtt", "data": {"topic": "orders.3", "payload": {"ticketId": 3}}})
            events = {websocket.receive_json()["event"] for _ in range(2)}
            assert events == {"republish-result", "mqtt-event"}

    def test_refused_without_broker(self):
        with pytest.raises(WebSocketDisconnect):
            with TestClient(app).websocket_connect("/v1/events/ws") as websocket:
                websocket.receive_json()


class TestAdminEndpoints:
    """Tests for admin endpoints."""

    def test_list_connections(self, client):
        response = client.get("/v1/admin/connections")
        assert response.status_code == 200

        data = response.json()
        assert data["count"] == 0
        assert data["connections"] == []

    def test_lists_websocket_viewers(self, client):
        with client.websocket_connect("/v1/events/ws?viewer_id=wall-screen") as websocket:
            websocket.receive_json()

            data = client.get("/v1/admin/connections").json()

            assert data["count"] == 1
            viewer = data["connections"][0]
            assert viewer["viewer_id"] == "wall-screen"
            assert viewer["transport"] == "websocket"
            assert viewer["dropped"] == 0



class TestRelayOverHttp:
    """Republish over HTTP and watch the relayed event through the pipeline."""

    async def test_republished_message_is_relayed(self, async_client):
        viewer = relay_manager.broadcaster.register("observer")

        response = await async_client.post(
            "/v1/events/republish",
            json={"topic": "orders.7", "payload": {"order": {"ticketId": "7"}}},
        )
        assert response.json() == {"success": True, "topic": "orders.7"}

        event = await viewer.next_event(timeout=1)
        assert event.topic == "orders.7"
        assert event.correlation_id == 7
        assert event.raw == '{"order":{"ticketId":"7"}}'

        health = (await async_client.get("/health")).json()
        assert health["pipeline"]["relayed"] >= 1
        assert health["active_viewers"] == 1
