"""
Relay Service - Main FastAPI Application

Bridges a publish/subscribe broker to live viewers:
- Broker messages are normalized (gzip sniffing, JSON parsing), tagged with
  a ticket id and display color, and broadcast to every viewer
- Viewers may republish messages back onto the broker and get a
  per-request acknowledgment
- Server-Sent Events and WebSocket transports for viewers
- Adapter pattern for broker flexibility (NATS, in-memory)
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import settings
from .api import router
from .services.relay_manager import relay_manager

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup (connect to the broker, start relaying) and shutdown.
    """
    await relay_manager.initialize()
    yield
    await relay_manager.shutdown()


app = FastAPI(
    title="Relay Service",
    description="Broker-to-viewer event relay with ticket correlation and republish",
    version=settings.service_version,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/", tags=["Info"])
async def root() -> Dict[str, str]:
    """Root endpoint with service info."""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "docs": "/docs",
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn
    uvicorn.run(app, host=settings.service_host, port=settings.service_port)


if __name__ == "__main__":
    run()
