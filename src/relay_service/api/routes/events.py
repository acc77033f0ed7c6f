import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket, status
from sse_starlette.sse import EventSourceResponse

from ...models.relay import RepublishRequest
from ...services.relay_manager import relay_manager

router = APIRouter(tags=["Events"])
logger = logging.getLogger(__name__)

@router.post(
    "/republish",
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": RepublishRequest.model_json_schema()}},
        },
    },
)
async def republish_event(request: Request) -> Dict[str, Any]:
    """
    Publish a viewer-supplied message back onto the broker.

    The outcome is returned to the caller only, as
    `{success, topic?, error?}`; failures, including bodies that are not a
    `{topic, payload}` JSON object, are reported in the body, not as HTTP
    errors.
    """
    try:
        body = await request.json()
    except ValueError:
        body = None

    result = await relay_manager.republish_data(body)
    return result.to_wire()


@router.get("/stream")
async def stream_events(
    request: Request,
    viewer_id: str = Query(
        None,
        description="Optional identifier of the viewer, shown in the admin listing"
    ),
) -> EventSourceResponse:
    """
    Subscribe to relay events via Server-Sent Events (SSE).

    Emits `connected` once, then one `mqtt-event` per relayed message and a
    `heartbeat` whenever the stream is idle.
    """
    try:
        relay_manager.require_adapter()
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return EventSourceResponse(
        relay_manager.create_stream(
            viewer_id=viewer_id,
            check_disconnected=request.is_disconnected,
        )
    )


@router.websocket("/ws")
async def viewer_socket(websocket: WebSocket, viewer_id: str = Query(None)) -> None:
    """
    Bidirectional viewer session: relay events out, republish requests in.
    """
    try:
        relay_manager.require_adapter()
    except RuntimeError as e:
        logger.warning(f"Refusing WebSocket viewer: {e}")
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return
    await relay_manager.run_websocket(websocket, viewer_id=viewer_id)
