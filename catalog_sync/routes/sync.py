"""
Sync routes — read-only view of recorded sync outcomes.

Version: 1.0.0
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query

from catalog_sync.db.sync_outcome_store import SyncOutcomeStore
from catalog_sync.schemas.sync import SyncOutcomeListResponse

logger = logging.getLogger(__name__)


def build_sync_router(outcomes: SyncOutcomeStore) -> APIRouter:
    router = APIRouter(prefix="/sync", tags=["sync"])

    @router.get("/outcomes/{tenant_id}", response_model=SyncOutcomeListResponse)
    async def list_sync_outcomes(
        tenant_id: str,
        external_id: Optional[str] = Query(None, description="Only outcomes for this product"),
        limit: int = Query(100, ge=1, le=1000),
    ):
        """Most recent outcomes for a tenant, newest first."""
        rows = await outcomes.list_recent(tenant_id, external_id=external_id, limit=limit)
        return SyncOutcomeListResponse(tenant_id=tenant_id, outcomes=rows, total=len(rows))

    return router
