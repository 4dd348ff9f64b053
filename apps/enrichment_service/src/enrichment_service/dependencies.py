import logging

from enrichment import TaskCoordinator
from fastapi import Request

logger = logging.getLogger(__name__)


async def get_coordinator(request: Request) -> TaskCoordinator:
    """
    Dependency that provides the TaskCoordinator instance.

    The coordinator is built in the FastAPI lifespan event and stored in the
    app's state. No cleanup is needed here since its lifecycle is managed by
    the lifespan context manager.

    Args:
        request: FastAPI request object containing app state

    Returns:
        Initialized TaskCoordinator instance

    Raises:
        RuntimeError: If the coordinator is not available in app state
    """
    if (
        not hasattr(request.app.state, "coordinator")
        or request.app.state.coordinator is None
    ):
        logger.error("TaskCoordinator not initialized in app state.")
        raise RuntimeError("TaskCoordinator not available.")
    return request.app.state.coordinator
