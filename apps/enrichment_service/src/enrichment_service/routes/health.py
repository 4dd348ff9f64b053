"""Liveness endpoint for enrichment_service."""

import logging
from typing import Any

from common.config import get_settings
from common.utils.datetime_utils import utc_now
from enrichment import TaskCoordinator
from fastapi import APIRouter, Depends

from ..dependencies import get_coordinator

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(
    coordinator: TaskCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    """Return service liveness and the enrichment kinds currently running.

    Args:
        coordinator: Injected task coordinator.

    Returns:
        Health status dict with service metadata and active task ids per kind.
    """
    active = coordinator.list_active()
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "track-enrichment-service",
        "version": settings.service.api_version,
        "available_kinds": sorted(kind.value for kind in coordinator.strategies),
        "active_tasks": {task.kind.value: task.id for task in active},
    }
