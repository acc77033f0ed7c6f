from typing import List
from pydantic import BaseModel, Field


class PipelineStats(BaseModel):
    """Ingestion counters since startup."""
    received: int = Field(..., description="Messages received from the broker")
    relayed: int = Field(..., description="Events broadcast to viewers")
    dropped: int = Field(..., description="Messages dropped because they could not be decoded")
    pending: int = Field(..., description="Messages waiting for ingestion")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    adapter: str = Field(..., description="Active adapter type")
    connected: bool = Field(..., description="Whether adapter is connected")
    active_viewers: int = Field(..., description="Number of connected viewers")
    pipeline: PipelineStats = Field(..., description="Ingestion counters")


class ViewerInfo(BaseModel):
    """A connected viewer as listed by the admin API."""
    connection_id: str
    viewer_id: str
    transport: str
    connected_at: str
    pending: int = Field(..., description="Events queued for this viewer")
    dropped: int = Field(..., description="Events dropped because this viewer fell behind")


class ConnectionsResponse(BaseModel):
    """Admin listing of connected viewers."""
    count: int
    connections: List[ViewerInfo]
