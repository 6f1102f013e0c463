"""
Trigger deferral — hands webhook and schedule triggers to Celery.

Used by the web process dispatcher so that request handlers return as
soon as the work is queued.
Version: 1.0.0
"""
import logging

from catalog_sync.core.constants.sync import TriggerAction
from catalog_sync.core.exceptions import ValidationError
from catalog_sync.schemas.webhooks import Trigger

logger = logging.getLogger(__name__)


def defer_trigger(trigger: Trigger):
    """Enqueue the Celery task matching a trigger; returns the AsyncResult."""
    from catalog_sync.celery_app.tasks.catalog_sync import run_full_sync, sync_product
    from catalog_sync.celery_app.tasks.token_refresh import refresh_expiring_tokens

    if trigger.action == TriggerAction.PRODUCT_CHANGED:
        payload = trigger.payload
        return sync_product.delay(payload["tenant_id"], payload["external_id"])
    if trigger.action == TriggerAction.FULL_SYNC:
        return run_full_sync.delay()
    if trigger.action == TriggerAction.REFRESH_TOKENS:
        return refresh_expiring_tokens.delay()

    raise ValidationError(f"Trigger {trigger.action.value} cannot be deferred")
