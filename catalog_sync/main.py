import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from catalog_sync.container import (
    get_async_redis_client,
    get_redis_client,
    get_sync_outcome_store,
    get_web_dispatcher,
)
from catalog_sync.core.config import settings
from catalog_sync.core.middleware import apply_cors, apply_exception_handlers
from catalog_sync.routes import build_v1_router, health_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan event handler.

    On startup:
    - Log which platforms are configured
    - Verify Redis connection (OAuth state lives there)

    Celery worker and beat run as separate processes:
        celery -A catalog_sync.celery_app worker -Q default,sync,auth -l info
        celery -A catalog_sync.celery_app beat -l info
    """
    logger.info("=== Catalog Sync Starting ===")

    if not (settings.platform_a_app_key and settings.platform_a_app_secret):
        logger.warning("Platform A app key/secret not configured; installs will be rejected")
    if not settings.platform_b_verification_public_key:
        logger.warning("Platform B verification key not configured; callbacks will be rejected")

    try:
        get_redis_client().ping()
        logger.info("Redis connection OK")
    except Exception as e:
        logger.warning(f"Redis unavailable at startup (OAuth state and task queue depend on it): {e}")

    logger.info(
        f"Scheduled sync {'enabled' if settings.sync_enabled else 'disabled'}; "
        f"max {settings.sync_max_workers} concurrent tenants"
    )
    logger.info("=== Catalog Sync Ready ===")

    yield

    logger.info("=== Catalog Sync Shutting Down ===")
    await get_async_redis_client().aclose()


app = FastAPI(title="Catalog Sync Backend", lifespan=lifespan)
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

apply_cors(app)
apply_exception_handlers(app)

app.include_router(build_v1_router(get_web_dispatcher(), get_sync_outcome_store()))
app.include_router(health_router)
