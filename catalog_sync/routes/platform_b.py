"""
Platform B routes — PKCE install and token-verified callback.

Version: 1.0.0
"""
import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse

from catalog_sync.core.constants.sync import Platform, TriggerAction, TriggerKind
from catalog_sync.schemas.oauth import CallbackProof
from catalog_sync.schemas.webhooks import Trigger
from catalog_sync.services.trigger_dispatcher import TriggerDispatcher

logger = logging.getLogger(__name__)


def build_platform_b_router(dispatcher: TriggerDispatcher) -> APIRouter:
    router = APIRouter(prefix="/platform-b", tags=["platform-b"])

    @router.get("/install")
    async def platform_b_install(handle: str = Query(..., description="Platform A shop handle to link")):
        """Start linking an installed Platform A shop to Platform B."""
        start = await dispatcher.dispatch(Trigger(
            kind=TriggerKind.CALLBACK,
            action=TriggerAction.INSTALL_BEGIN,
            payload={"platform": Platform.PLATFORM_B.value, "tenant_hint": handle},
        ))
        return RedirectResponse(start.authorize_url, status_code=302)

    @router.get("/callback")
    async def platform_b_callback(request: Request):
        """
        Complete the PKCE exchange.

        The `token` query parameter is a signed verification token whose
        requestHash binds it to this exact path and query.
        """
        params = dict(request.query_params)
        proof = CallbackProof(
            params=params,
            path=request.url.path,
            query=request.url.query,
            body=await request.body(),
        )
        result = await dispatcher.dispatch(Trigger(
            kind=TriggerKind.CALLBACK,
            action=TriggerAction.INSTALL_COMPLETE,
            payload={
                "platform": Platform.PLATFORM_B.value,
                "state": params.get("state"),
                "code": params.get("code"),
                "proof": proof,
            },
        ))
        logger.info(f"Platform B linked for {result.tenant_id}")
        return {"status": result.status.value, "tenant_id": result.tenant_id, "platform": result.platform.value}

    return router
