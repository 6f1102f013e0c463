"""
Health routes — liveness and readiness checks.

Readiness checks Redis only: OAuth state, the Celery broker and the run
locks all live there, while Supabase failures surface per request.
Version: 1.0.0
"""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from catalog_sync.container import get_redis_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check():
    """Report whether Redis is reachable."""
    try:
        get_redis_client().ping()
    except Exception as e:
        logger.warning(f"Readiness check failed: redis unreachable: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "redis": "down"})
    return {"status": "ready", "redis": "up"}
