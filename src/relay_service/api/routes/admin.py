from fastapi import APIRouter
from ...models.schemas import ConnectionsResponse, ViewerInfo
from ...services.relay_manager import relay_manager

router = APIRouter(tags=["Admin"])

@router.get("/connections", response_model=ConnectionsResponse)
async def list_connections() -> ConnectionsResponse:
    """
    List all connected viewers.

    Note: This endpoint should be protected in production.
    """
    connections = [
        ViewerInfo(
            connection_id=conn_id,
            viewer_id=conn.viewer_id,
            transport=conn.transport,
            connected_at=conn.connected_at.isoformat(),
            pending=conn.queue.qsize(),
            dropped=conn.dropped,
        )
        for conn_id, conn in relay_manager.active_connections.items()
    ]
    return ConnectionsResponse(count=len(connections), connections=connections)
