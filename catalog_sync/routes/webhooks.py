"""
Webhook routes — Platform A product change notifications.

Version: 1.0.0
"""
import logging

from fastapi import APIRouter, Body

from catalog_sync.core.config import settings
from catalog_sync.core.constants.sync import TriggerAction, TriggerKind
from catalog_sync.schemas.webhooks import ProductWebhookPayload, Trigger
from catalog_sync.services.auth_flows import normalize_handle
from catalog_sync.services.trigger_dispatcher import TriggerDispatcher

logger = logging.getLogger(__name__)


def build_webhooks_router(dispatcher: TriggerDispatcher) -> APIRouter:
    router = APIRouter(prefix="/webhooks", tags=["webhooks"])

    @router.post("/products", status_code=202)
    async def product_changed(payload: ProductWebhookPayload = Body(...)):
        """Queue an incremental sync for one changed product."""
        tenant_id = normalize_handle(payload.handle, settings.platform_a_domain_suffix)
        logger.info(f"Product webhook tenant={tenant_id} product={payload.product_id}")
        return await dispatcher.dispatch(Trigger(
            kind=TriggerKind.WEBHOOK,
            action=TriggerAction.PRODUCT_CHANGED,
            payload={"tenant_id": tenant_id, "external_id": payload.product_id},
        ))

    return router
