"""
Trigger dispatcher — one entry point for callbacks, webhooks and schedules.

Routes and Celery tasks reduce whatever invoked them to a typed Trigger
and hand it here; nothing below this point inspects paths or raw
payload shapes to decide what to do.

When a deferrer is configured (web process), webhook and schedule
triggers are handed to it instead of running inline; the worker process
dispatches the same trigger again without a deferrer.
Version: 1.0.0
"""
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from catalog_sync.core.constants.sync import Platform, TriggerAction, TriggerKind
from catalog_sync.core.exceptions import ValidationError
from catalog_sync.schemas.oauth import CallbackProof
from catalog_sync.schemas.webhooks import Trigger
from catalog_sync.services.auth_flows import AuthFlow, PlatformAHmacFlow
from catalog_sync.services.sync_orchestrator import SyncOrchestrator
from catalog_sync.services.token_refresh_service import TokenRefreshService

logger = logging.getLogger("trigger_dispatcher")

Handler = Callable[[Dict[str, Any]], Any]

DEFERRABLE_KINDS = (TriggerKind.WEBHOOK, TriggerKind.SCHEDULE)


class TriggerDispatcher:

    def __init__(
        self,
        flows: Dict[Platform, AuthFlow],
        orchestrator: Optional[SyncOrchestrator] = None,
        refresh_service: Optional[TokenRefreshService] = None,
        deferrer: Optional[Callable[[Trigger], Any]] = None,
    ) -> None:
        self._flows = flows
        self._orchestrator = orchestrator
        self._refresh_service = refresh_service
        self._deferrer = deferrer
        self._handlers: Dict[Tuple[TriggerKind, TriggerAction], Handler] = {
            (TriggerKind.CALLBACK, TriggerAction.INSTALL_BEGIN): self._install_begin,
            (TriggerKind.CALLBACK, TriggerAction.INSTALL_COMPLETE): self._install_complete,
            (TriggerKind.CALLBACK, TriggerAction.UNINSTALL): self._uninstall,
            (TriggerKind.WEBHOOK, TriggerAction.PRODUCT_CHANGED): self._product_changed,
            (TriggerKind.SCHEDULE, TriggerAction.REFRESH_TOKENS): self._refresh_tokens,
            (TriggerKind.SCHEDULE, TriggerAction.FULL_SYNC): self._full_sync,
        }

    async def dispatch(self, trigger: Trigger) -> Any:
        handler = self._handlers.get((trigger.kind, trigger.action))
        if handler is None:
            raise ValidationError(f"Unsupported trigger {trigger.kind.value}/{trigger.action.value}")

        if self._deferrer is not None and trigger.kind in DEFERRABLE_KINDS:
            logger.info(f"Deferring trigger {trigger.kind.value}/{trigger.action.value}")
            self._deferrer(trigger)
            return {"status": "queued", "kind": trigger.kind.value, "action": trigger.action.value}

        logger.debug(f"Dispatching trigger {trigger.kind.value}/{trigger.action.value}")
        return await handler(trigger.payload)

    def _flow(self, payload: Dict[str, Any]) -> AuthFlow:
        try:
            return self._flows[Platform(payload.get("platform"))]
        except (KeyError, ValueError):
            raise ValidationError(f"Unknown platform: {payload.get('platform')!r}")

    @staticmethod
    def _proof(payload: Dict[str, Any]) -> Optional[CallbackProof]:
        proof = payload.get("proof")
        if proof is None or isinstance(proof, CallbackProof):
            return proof
        return CallbackProof(**proof)

    # -- callback ----------------------------------------------------------

    async def _install_begin(self, payload: Dict[str, Any]):
        return await self._flow(payload).begin_install(payload.get("tenant_hint"), self._proof(payload))

    async def _install_complete(self, payload: Dict[str, Any]):
        return await self._flow(payload).complete_install(
            payload.get("state"), payload.get("code"), self._proof(payload) or CallbackProof()
        )

    async def _uninstall(self, payload: Dict[str, Any]):
        flow = self._flows.get(Platform.PLATFORM_A)
        if not isinstance(flow, PlatformAHmacFlow):
            raise ValidationError("Uninstall is only supported for Platform A")
        tenant_id = await flow.uninstall(self._proof(payload) or CallbackProof())
        return {"status": "uninstalled", "tenant_id": tenant_id}

    # -- webhook -----------------------------------------------------------

    async def _product_changed(self, payload: Dict[str, Any]):
        tenant_id, external_id = payload.get("tenant_id"), payload.get("external_id")
        if not tenant_id or not external_id:
            raise ValidationError("Product webhook requires tenant_id and external_id")
        return await self._require_orchestrator().run_incremental(tenant_id, external_id)

    # -- schedule ----------------------------------------------------------

    async def _refresh_tokens(self, payload: Dict[str, Any]):
        if self._refresh_service is None:
            raise ValidationError("Token refresh is not configured in this process")
        return await self._refresh_service.sweep()

    async def _full_sync(self, payload: Dict[str, Any]):
        return await self._require_orchestrator().run_batch()

    def _require_orchestrator(self) -> SyncOrchestrator:
        if self._orchestrator is None:
            raise ValidationError("Catalog sync is not configured in this process")
        return self._orchestrator
