import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from ..core.config import settings
from ..adapters.base import BrokerAdapter
from ..adapters.nats_adapter import NatsAdapter, build_tls_context
from ..adapters.memory_adapter import MemoryAdapter
from ..models.relay import RepublishRequest, RepublishResult
from ..relay.broadcaster import Broadcaster, ViewerConnection
from ..relay.pipeline import RelayPipeline
from ..relay.republish import INVALID_REQUEST_ERROR, RepublishBridge

logger = logging.getLogger(__name__)

# Viewer protocol event names
EVENT_RELAY = "mqtt-event"
EVENT_REPUBLISH_REQUEST = "republish-mqtt"
EVENT_REPUBLISH_RESULT = "republish-result"

MALFORMED_FRAME_ERROR = "Malformed frame"


class RelayManager:
    """
    Owns the broker adapter, the ingestion pipeline and the viewer side.
    Singleton-like service that handles the lifecycle of the broker connection.
    """

    def __init__(self):
        self.adapter: Optional[BrokerAdapter] = None
        self.broadcaster = Broadcaster(queue_size=settings.viewer_queue_size)
        self.pipeline = RelayPipeline(self.broadcaster, max_depth=settings.correlation_max_depth)
        self.bridge: Optional[RepublishBridge] = None
        self.subscription_id: Optional[str] = None

    @property
    def active_connections(self) -> Dict[str, ViewerConnection]:
        return self.broadcaster.connections

    def _get_adapter(self) -> BrokerAdapter:
        """Factory function to create the appropriate adapter based on configuration."""
        adapter_type = settings.broker_adapter.lower()

        if adapter_type == "nats":
            return NatsAdapter(
                url=settings.nats_url,
                reconnect_time_wait=settings.nats_reconnect_time_wait,
                max_reconnect_attempts=settings.nats_max_reconnect_attempts,
                subject_prefix=settings.nats_subject_prefix,
                tls_context=build_tls_context(
                    settings.tls_ca_file,
                    settings.tls_cert_file,
                    settings.tls_key_file,
                ),
                user=settings.nats_user,
                password=settings.nats_password,
                token=settings.nats_token,
            )
        elif adapter_type == "memory":
            return MemoryAdapter()
        else:
            raise ValueError(f"Unknown adapter type: {adapter_type}")

    async def initialize(self, adapter: Optional[BrokerAdapter] = None):
        """Connect the adapter, start ingestion and subscribe to the relay topics."""
        self.adapter = adapter or self._get_adapter()
        logger.info(f"Starting Relay Service with {self.adapter.name}")
        self.bridge = RepublishBridge(self.adapter)

        try:
            await self.adapter.connect()
        except Exception as e:
            logger.error(f"Failed to connect adapter: {e}")
            # Continue anyway for graceful degradation in dev mode
            if not settings.debug:
                raise
            return

        await self.pipeline.start()
        self.subscription_id = await self.adapter.subscribe(
            topics=settings.relay_topics,
            handler=self.pipeline.on_message,
        )
        logger.info(f"Relay Service ready on port {settings.service_port}, relaying {settings.relay_topics}")

    async def shutdown(self):
        """Close viewer streams, stop ingestion and disconnect the adapter."""
        logger.info("Shutting down Relay Service")

        self.broadcaster.close_all()
        await self.pipeline.stop()

        if self.adapter:
            if self.subscription_id and self.adapter.is_connected:
                try:
                    await self.adapter.unsubscribe(self.subscription_id)
                except Exception as e:
                    logger.warning(f"Error unsubscribing {self.subscription_id}: {e}")
            await self.adapter.disconnect()
        self.subscription_id = None

        logger.info("Relay Service shutdown complete")

    def require_adapter(self) -> None:
        if not self.adapter:
            raise RuntimeError("Broker adapter not initialized")

        if not self.adapter.is_connected:
            raise RuntimeError("Broker adapter not connected")

    async def republish(self, request: RepublishRequest) -> RepublishResult:
        """Republish on behalf of one viewer."""
        if not self.bridge:
            return RepublishResult(success=False, error="Broker adapter not initialized")
        return await self.bridge.republish(request)

    async def republish_data(self, data: Any) -> RepublishResult:
        """
        Validate an untyped `{topic, payload}` body, then republish it.

        A body that does not fit the request shape is answered with a failed
        result, like any other invalid request.
        """
        try:
            request = RepublishRequest.model_validate(data if data is not None else {})
        except ValidationError:
            return RepublishResult(success=False, error=INVALID_REQUEST_ERROR)
        return await self.republish(request)

    async def create_stream(
        self,
        viewer_id: Optional[str] = None,
        check_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncGenerator[Dict[str, str], None]:
        """
        Create an SSE stream generator for one viewer.
        """
        self.require_adapter()

        connection = self.broadcaster.register(viewer_id, transport="sse")
        connection_id = connection.connection_id

        try:
            yield {
                "event": "connected",
                "data": json.dumps({
                    "connection_id": connection_id,
                    "viewer_id": connection.viewer_id,
                }),
            }

            heartbeat_interval = settings.stream_heartbeat_interval

            while not connection.cancel_event.is_set():
                try:
                    if check_disconnected and await check_disconnected():
                        logger.info(f"Client {connection_id} disconnected")
                        break

                    try:
                        event = await connection.next_event(timeout=heartbeat_interval)
                        yield {
                            "event": EVENT_RELAY,
                            "id": str(event.id),
                            "data": json.dumps(event.to_wire()),
                        }
                    except asyncio.TimeoutError:
                        # Send heartbeat to keep connection alive
                        yield {
                            "event": "heartbeat",
                            "data": json.dumps({"connection_id": connection_id}),
                        }

                except asyncio.CancelledError:
                    logger.info(f"Stream cancelled for connection {connection_id}")
                    break
                except Exception as e:
                    logger.error(f"Error in event stream {connection_id}: {e}")
                    break

        finally:
            logger.info(f"Cleaning up connection {connection_id}")
            self.broadcaster.unregister(connection_id)

    async def run_websocket(self, websocket: WebSocket, viewer_id: Optional[str] = None) -> None:
        """
        Serve one WebSocket viewer until it disconnects or the service stops.

        Relay events are pumped from the viewer's broadcast queue by a
        background task; republish results are sent directly from the
        receive loop and never go through that queue.
        """
        await websocket.accept()
        connection = self.broadcaster.register(viewer_id, transport="websocket")
        connection_id = connection.connection_id
        send_lock = asyncio.Lock()

        async def send(event_name: str, data: Dict[str, Any]) -> None:
            async with send_lock:
                await websocket.send_json({"event": event_name, "data": data})

        async def pump() -> None:
            while True:
                event = await connection.next_event()
                await send(EVENT_RELAY, event.to_wire())

        async def receive() -> None:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))

                text = message.get("text")
                if text is None:
                    result = RepublishResult(success=False, error=MALFORMED_FRAME_ERROR)
                else:
                    result = await self._handle_frame(text)
                if result is not None:
                    await send(EVENT_REPUBLISH_RESULT, result.to_wire())

        try:
            await send("connected", {"connection_id": connection_id, "viewer_id": connection.viewer_id})
        except Exception:
            self.broadcaster.unregister(connection_id)
            raise

        pump_task = asyncio.create_task(pump(), name=f"viewer-{connection_id}")
        receive_task = asyncio.create_task(receive(), name=f"viewer-{connection_id}-receive")
        closed_task = asyncio.create_task(connection.cancel_event.wait())
        tasks = [pump_task, receive_task, closed_task]

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

            if closed_task in done:
                logger.info(f"Closing WebSocket viewer {connection_id}")
                await websocket.close(code=status.WS_1001_GOING_AWAY)
            elif receive_task in done:
                try:
                    receive_task.result()
                except WebSocketDisconnect:
                    logger.info(f"WebSocket viewer {connection_id} disconnected")
            else:
                # Pump only ends when a send fails
                logger.debug(f"Viewer pump {connection_id} ended with: {pump_task.exception()}")
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self.broadcaster.unregister(connection_id)

    async def _handle_frame(self, text: str) -> Optional[RepublishResult]:
        """Dispatch one client frame; returns the result to send back, if any."""
        try:
            frame = json.loads(text)
        except ValueError:
            return RepublishResult(success=False, error=MALFORMED_FRAME_ERROR)

        if not isinstance(frame, dict):
            return RepublishResult(success=False, error=MALFORMED_FRAME_ERROR)

        event_name = frame.get("event")
        if event_name != EVENT_REPUBLISH_REQUEST:
            logger.warning(f"Ignoring unknown viewer event: {event_name!r}")
            return None

        return await self.republish_data(frame.get("data"))


# Global instance
relay_manager = RelayManager()
