"""
Platform A routes — HMAC-signed install, callback and uninstall.

Platform A calls these endpoints directly from the merchant admin; every
request carries appkey, handle, timestamp and sign query parameters.
Version: 1.0.0
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from catalog_sync.core.constants.sync import Platform, TriggerAction, TriggerKind
from catalog_sync.schemas.oauth import CallbackProof
from catalog_sync.schemas.webhooks import Trigger
from catalog_sync.services.trigger_dispatcher import TriggerDispatcher

logger = logging.getLogger(__name__)


def _proof(request: Request, body: bytes = b"") -> CallbackProof:
    return CallbackProof(
        params=dict(request.query_params),
        path=request.url.path,
        query=request.url.query,
        body=body,
    )


def build_platform_a_router(dispatcher: TriggerDispatcher) -> APIRouter:
    router = APIRouter(prefix="/platform-a", tags=["platform-a"])

    @router.get("/install")
    async def platform_a_install(request: Request):
        """Verify the signed install request and redirect to the authorize page."""
        proof = _proof(request)
        start = await dispatcher.dispatch(Trigger(
            kind=TriggerKind.CALLBACK,
            action=TriggerAction.INSTALL_BEGIN,
            payload={
                "platform": Platform.PLATFORM_A.value,
                "tenant_hint": proof.params.get("handle"),
                "proof": proof,
            },
        ))
        return RedirectResponse(start.authorize_url, status_code=302)

    @router.get("/callback")
    async def platform_a_callback(request: Request):
        proof = _proof(request)
        result = await dispatcher.dispatch(Trigger(
            kind=TriggerKind.CALLBACK,
            action=TriggerAction.INSTALL_COMPLETE,
            payload={
                "platform": Platform.PLATFORM_A.value,
                "state": proof.params.get("state"),
                "code": proof.params.get("code"),
                "proof": proof,
            },
        ))
        logger.info(f"Platform A install completed for {result.tenant_id}")
        return {"status": result.status.value, "tenant_id": result.tenant_id, "platform": result.platform.value}

    @router.post("/uninstall")
    async def platform_a_uninstall(request: Request):
        """Soft-revoke the shop named in the signed request."""
        proof = _proof(request, await request.body())
        return await dispatcher.dispatch(Trigger(
            kind=TriggerKind.CALLBACK,
            action=TriggerAction.UNINSTALL,
            payload={"platform": Platform.PLATFORM_A.value, "proof": proof},
        ))

    return router
