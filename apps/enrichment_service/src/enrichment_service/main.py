"""Track Enrichment Service - FastAPI control surface for enrichment tasks.

This service runs background enrichment of the track catalogue (embeddings,
cross-platform links, release dates) and exposes endpoints to start, stop
and observe those runs.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from common.config import get_settings
from fastapi import FastAPI

from .routes import enrichment, health
from .runtime import EnrichmentRuntime, build_runtime, close_runtime

# Get application settings
settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.service.log_level),
    format=settings.service.log_format,
)
logger = logging.getLogger(__name__)


async def autostart(runtime: EnrichmentRuntime) -> None:
    """Start the kinds listed in ``enrichment.autostart_kinds``."""
    for kind in settings.enrichment.autostart_kinds:
        if kind not in runtime.coordinator.strategies:
            logger.warning(f"Cannot autostart {kind.value}: strategy not available")
            continue
        task, _ = await runtime.coordinator.start(kind)
        logger.info(f"Autostarted {kind.value} enrichment as {task.id}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    Opens the track store, builds API clients, strategies, the task registry
    and coordinator, and stores them on ``app.state`` for dependency
    injection. On shutdown, running tasks are stopped at their next batch
    boundary before clients and the connection pool are closed.

    Args:
        app: FastAPI application instance.

    Yields:
        Control back to the framework after successful initialization.
    """
    logger.info("Initializing track store, API clients and enrichment coordinator...")
    runtime = await build_runtime(settings)
    app.state.runtime = runtime
    app.state.coordinator = runtime.coordinator
    try:
        await autostart(runtime)
        logger.info("Enrichment service initialized successfully")
        yield
    finally:
        # Cleanup on shutdown - guaranteed to run
        logger.info("Shutting down enrichment service...")
        try:
            await close_runtime(runtime)
            logger.info("Enrichment runtime closed successfully")
        except Exception:
            logger.exception("Error closing enrichment runtime")


# Create FastAPI app
app = FastAPI(
    title=settings.service.api_title,
    description=settings.service.api_description,
    version=settings.service.api_version,
    lifespan=lifespan,
)

# Include API routers
app.include_router(health.router, tags=["health"])
app.include_router(enrichment.router, prefix="/enrichment", tags=["enrichment"])


@app.get("/")
async def root() -> dict[str, Any]:
    """Return service metadata and a directory of available endpoints.

    Returns:
        Dict with service name, version, and endpoint paths.
    """
    return {
        "service": settings.service.api_title,
        "version": settings.service.api_version,
        "endpoints": {
            "health": "/health",
            "start": "/enrichment/{kind}/start",
            "status": "/enrichment/{kind}/status/{task_id}",
            "stop": "/enrichment/{kind}/stop/{task_id}",
            "stats": "/enrichment/{kind}/stats",
            "tasks": "/enrichment/tasks",
            "docs": "/docs",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "enrichment_service.main:app",
        host=settings.service.enrichment_service_host,
        port=settings.service.enrichment_service_port,
        reload=settings.debug,
        log_level=settings.service.log_level.lower(),
    )
