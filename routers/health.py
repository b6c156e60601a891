from fastapi import APIRouter, Request

from logging_config import get_logger

logger = get_logger(__name__)

health_router = APIRouter(tags=["health"])


@health_router.get("/health")
async def health(request: Request):
    """Liveness probe with aggregate counts. Room names are not exposed."""
    stats = await request.app.state.registry.stats()
    logger.debug(f"Health check: {stats}")
    return {"status": "ok", **stats}
