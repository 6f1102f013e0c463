"""
Token refresh task — periodic sweep of credentials nearing expiry.

Tasks:
- refresh_expiring_tokens: Beat-triggered; refreshes every active credential
  expiring inside the configured window
Version: 1.0.0
"""
import logging

from catalog_sync.celery_app.celery_config import celery_app
from catalog_sync.celery_app.tasks.base import BaseTask, dispatch
from catalog_sync.container import get_redis_client
from catalog_sync.core.constants.sync import TriggerAction, TriggerKind
from catalog_sync.schemas.webhooks import Trigger
from catalog_sync.utils.run_lock import acquire_run_lock, release_run_lock

logger = logging.getLogger(__name__)

REFRESH_LOCK = "token_refresh"
REFRESH_LOCK_TTL = 1800  # 30 min


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.token_refresh.refresh_expiring_tokens",
    max_retries=0
)
def refresh_expiring_tokens(self):
    """Run one refresh sweep; failures are counted per credential, not raised."""
    redis_client = get_redis_client()
    task_id = self.request.id or "unknown"
    if not acquire_run_lock(redis_client, REFRESH_LOCK, task_id, ttl=REFRESH_LOCK_TTL):
        return {"status": "skipped", "reason": "already_running"}

    try:
        result = dispatch(Trigger(kind=TriggerKind.SCHEDULE, action=TriggerAction.REFRESH_TOKENS))
        summary = result.summary()
        if summary.get("escalated"):
            logger.warning(f"{summary['escalated']} credential(s) now need re-authorization")
        logger.info(f"Token refresh sweep finished: {summary}")
        return {"status": "completed", **summary}
    finally:
        release_run_lock(redis_client, REFRESH_LOCK)
