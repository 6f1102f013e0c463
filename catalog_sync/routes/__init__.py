"""
Route aggregator — mounts all routers under /api/v1 prefix.

Combines the install, webhook and sync routers under /api/v1.
The health router is exported separately for main.py to mount at root.
Version: 1.0.0
"""
from fastapi import APIRouter

from catalog_sync.db.sync_outcome_store import SyncOutcomeStore
from catalog_sync.routes.health import router as health_router
from catalog_sync.routes.platform_a import build_platform_a_router
from catalog_sync.routes.platform_b import build_platform_b_router
from catalog_sync.routes.sync import build_sync_router
from catalog_sync.routes.webhooks import build_webhooks_router
from catalog_sync.services.trigger_dispatcher import TriggerDispatcher


def build_v1_router(dispatcher: TriggerDispatcher, outcomes: SyncOutcomeStore) -> APIRouter:
    v1_router = APIRouter(prefix="/api/v1")

    v1_router.include_router(build_platform_a_router(dispatcher))
    v1_router.include_router(build_platform_b_router(dispatcher))
    v1_router.include_router(build_webhooks_router(dispatcher))
    v1_router.include_router(build_sync_router(outcomes))

    return v1_router


__all__ = ["build_v1_router", "health_router"]
