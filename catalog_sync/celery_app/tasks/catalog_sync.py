"""
Catalog sync tasks — scheduled full sync and webhook-driven product sync.

Tasks:
- run_full_sync: Beat-triggered; reconciles every active, linked tenant
- sync_product: Webhook-triggered; reconciles one product of one tenant
Version: 1.0.0
"""
import logging

from catalog_sync.celery_app.celery_config import celery_app, SYNC_ENABLED
from catalog_sync.celery_app.tasks.base import BaseTask, dispatch
from catalog_sync.container import get_redis_client
from catalog_sync.core.constants.sync import TriggerAction, TriggerKind
from catalog_sync.core.exceptions import RetryableError
from catalog_sync.schemas.webhooks import Trigger
from catalog_sync.utils.run_lock import acquire_run_lock, release_run_lock

logger = logging.getLogger(__name__)

FULL_SYNC_LOCK = "full_catalog_sync"


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.catalog_sync.run_full_sync",
    max_retries=0
)
def run_full_sync(self):
    """
    Reconcile all linked tenants from Platform A to Platform B.

    Only one run is active at a time; an overlapping beat tick is skipped.
    Per-product and per-tenant failures are recorded as outcomes and never
    fail the task.
    """
    if not SYNC_ENABLED:
        logger.info("Scheduled sync is disabled (SYNC_ENABLED=false), skipping full sync")
        return {"status": "skipped", "reason": "sync_disabled"}

    redis_client = get_redis_client()
    task_id = self.request.id or "unknown"
    if not acquire_run_lock(redis_client, FULL_SYNC_LOCK, task_id):
        return {"status": "skipped", "reason": "already_running"}

    try:
        logger.info("=" * 60)
        logger.info("Full catalog sync started")
        logger.info("=" * 60)
        result = dispatch(Trigger(kind=TriggerKind.SCHEDULE, action=TriggerAction.FULL_SYNC))
        summary = result.summary()
        logger.info(f"Full catalog sync finished: {summary}")
        return {"status": "completed", **summary}
    finally:
        release_run_lock(redis_client, FULL_SYNC_LOCK)


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.catalog_sync.sync_product",
    max_retries=3
)
def sync_product(self, tenant_id: str, external_id: str):
    """
    Reconcile a single product after a Platform A change notification.

    Safe to redeliver: the create/update decision is re-derived from the
    current state of both platforms on every attempt.

    Args:
        tenant_id: Platform A shop handle
        external_id: Platform A product id
    """
    logger.info(f"Incremental sync tenant={tenant_id} product={external_id}")
    trigger = Trigger(
        kind=TriggerKind.WEBHOOK,
        action=TriggerAction.PRODUCT_CHANGED,
        payload={"tenant_id": tenant_id, "external_id": external_id},
    )
    try:
        result = dispatch(trigger)
    except RetryableError as e:
        logger.warning(f"Incremental sync for {tenant_id}/{external_id} hit a transient error: {e}")
        raise self.retry(exc=e)

    return {"status": "completed", **result.summary()}
