from fastapi import APIRouter
from ...models.schemas import HealthResponse, PipelineStats
from ...services.relay_manager import relay_manager

router = APIRouter(tags=["Health"])

@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns service status, adapter connection state, viewer count and
    ingestion counters.
    """
    adapter = relay_manager.adapter
    pipeline = relay_manager.pipeline
    return HealthResponse(
        status="healthy" if adapter and adapter.is_connected else "degraded",
        adapter=adapter.name if adapter else "none",
        connected=adapter.is_connected if adapter else False,
        active_viewers=len(relay_manager.active_connections),
        pipeline=PipelineStats(
            received=pipeline.received,
            relayed=pipeline.relayed,
            dropped=pipeline.dropped,
            pending=pipeline.pending,
        ),
    )
