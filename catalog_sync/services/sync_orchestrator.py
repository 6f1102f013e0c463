"""
Sync orchestrator — fans reconciliation out across tenants.

Two entry shapes:
- run_batch(): every active, linked tenant; full catalog diff per tenant,
  tenants processed concurrently up to max_workers.
- run_incremental(tenant_id, external_id): one product from one webhook;
  same per-product decision, no full-catalog fetch. Replays are safe
  because creation is keyed on an existence check on Platform B.

A failure is contained at the smallest unit: a push failure becomes a
failed outcome for that product, an adapter failure while listing becomes
a failed outcome for that tenant. Unlinked tenants are skipped. Runs always
complete and return a mixed result set.

Concurrent batch and incremental runs on the same product are not
serialized; the last push wins.
Version: 1.0.0
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from catalog_sync.core.constants.sync import SyncAction, TENANT_LEVEL_EXTERNAL_ID, TenantStatus
from catalog_sync.core.exceptions import CatalogSyncException, NotLinked
from catalog_sync.db.sync_outcome_store import SyncOutcomeStore
from catalog_sync.db.tenant_store import TenantStore
from catalog_sync.schemas.sync import SyncOutcome, SyncRunResult
from catalog_sync.services.catalog_adapters import CatalogAdapter
from catalog_sync.services.reconciliation import ReconciliationEngine, count_prior_failures, decide

logger = logging.getLogger("sync_orchestrator")

BATCH = "batch"
INCREMENTAL = "incremental"


def require_linked(tenant: Optional[Dict[str, Any]], tenant_id: str) -> Dict[str, Any]:
    """Raise NotLinked unless the tenant is active and has a Platform-B installation."""
    if (
        not tenant
        or tenant.get("status", TenantStatus.ACTIVE.value) != TenantStatus.ACTIVE.value
        or not tenant.get("platform_b_installation_id")
    ):
        raise NotLinked(tenant_id)
    return tenant


class SyncOrchestrator:

    def __init__(
        self,
        tenants: TenantStore,
        outcomes: SyncOutcomeStore,
        source: CatalogAdapter,
        target: CatalogAdapter,
        engine: ReconciliationEngine,
        max_workers: int = 4,
        history_limit: int = 500,
    ) -> None:
        self._tenants = tenants
        self._outcomes = outcomes
        self._source = source
        self._target = target
        self._engine = engine
        self._max_workers = max(1, max_workers)
        self._history_limit = history_limit

    # -- batch -------------------------------------------------------------

    async def run_batch(self) -> SyncRunResult:
        result = SyncRunResult(mode=BATCH)
        linked: List[str] = []
        for tenant in await self._tenants.list_active_tenants():
            tenant_id = tenant["tenant_id"]
            try:
                require_linked(tenant, tenant_id)
            except NotLinked:
                logger.info(f"Tenant {tenant_id} has no Platform B installation, skipping")
                result.tenants_skipped.append(tenant_id)
                continue
            linked.append(tenant_id)

        semaphore = asyncio.Semaphore(self._max_workers)

        async def worker(tenant_id: str) -> List[SyncOutcome]:
            async with semaphore:
                return await self.sync_tenant(tenant_id)

        gathered = await asyncio.gather(*(worker(t) for t in linked), return_exceptions=True)
        for tenant_id, outcome_or_exc in zip(linked, gathered):
            if isinstance(outcome_or_exc, BaseException) and not isinstance(outcome_or_exc, Exception):
                raise outcome_or_exc
            if isinstance(outcome_or_exc, Exception):
                logger.error(f"Tenant {tenant_id} sync crashed: {outcome_or_exc}", exc_info=outcome_or_exc)
                failed = [self._tenant_failure(tenant_id, outcome_or_exc, BATCH)]
                await self._record(failed)
                result.outcomes.extend(failed)
            else:
                result.outcomes.extend(outcome_or_exc)
        result.tenants_processed = len(linked)

        logger.info(f"Batch sync complete: {result.summary()}")
        return result

    async def sync_tenant(self, tenant_id: str) -> List[SyncOutcome]:
        """Full-catalog reconciliation for one tenant."""
        try:
            source_products = await self._source.list_products(tenant_id)
            target_products = await self._target.list_products(tenant_id)
            prior = await self._outcomes.list_recent(tenant_id, limit=self._history_limit)
        except CatalogSyncException as e:
            logger.warning(f"Tenant {tenant_id} catalog fetch failed: {e}")
            outcomes = [self._tenant_failure(tenant_id, e, BATCH)]
            await self._record(outcomes)
            return outcomes

        decisions = self._engine.plan(tenant_id, source_products, target_products, prior)
        outcomes = await self._engine.apply_all(tenant_id, decisions, BATCH)
        await self._record(outcomes)
        logger.info(
            f"Tenant {tenant_id}: {len(source_products)} source products, "
            f"{sum(o.action != SyncAction.SKIPPED for o in outcomes)} non-skipped outcomes"
        )
        return outcomes

    # -- incremental -------------------------------------------------------

    async def run_incremental(self, tenant_id: str, external_id: str) -> SyncRunResult:
        result = SyncRunResult(mode=INCREMENTAL)
        try:
            require_linked(await self._tenants.get_tenant(tenant_id), tenant_id)
        except NotLinked as e:
            logger.info(f"{e}, skipping product {external_id}")
            result.tenants_skipped.append(tenant_id)
            return result

        result.tenants_processed = 1
        outcome = await self._sync_product(tenant_id, external_id)
        await self._record([outcome])
        result.outcomes.append(outcome)
        return result

    async def _sync_product(self, tenant_id: str, external_id: str) -> SyncOutcome:
        target_id = self._engine.mapper.to_platform_b(tenant_id, external_id)
        try:
            source = await self._source.get_product(tenant_id, external_id)
            if source is None:
                return SyncOutcome(
                    tenant_id=tenant_id,
                    external_id=external_id,
                    action=SyncAction.SKIPPED,
                    error_detail="product not found on platform A",
                    mode=INCREMENTAL,
                )
            target = await self._target.get_product(tenant_id, target_id)
            prior = await self._outcomes.list_recent(tenant_id, external_id=external_id, limit=20)
        except CatalogSyncException as e:
            logger.warning(f"Incremental fetch failed tenant={tenant_id} product={external_id}: {e}")
            return SyncOutcome(
                tenant_id=tenant_id,
                external_id=external_id,
                action=SyncAction.FAILED,
                error_detail=str(e),
                mode=INCREMENTAL,
            )

        decision = decide(source, target, target_id, count_prior_failures(prior, external_id))
        return await self._engine.apply(tenant_id, decision, INCREMENTAL)

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _tenant_failure(tenant_id: str, error: BaseException, mode: str) -> SyncOutcome:
        return SyncOutcome(
            tenant_id=tenant_id,
            external_id=TENANT_LEVEL_EXTERNAL_ID,
            action=SyncAction.FAILED,
            error_detail=f"{type(error).__name__}: {error}",
            mode=mode,
        )

    async def _record(self, outcomes: List[SyncOutcome]) -> None:
        try:
            await self._outcomes.record_outcomes(outcomes)
        except CatalogSyncException as e:
            logger.error(f"Failed to record {len(outcomes)} sync outcomes: {e}")
