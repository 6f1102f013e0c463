"""
Reconciliation engine — decide and apply Platform A → Platform B corrections.

Planning is a pure function of two normalized product lists and the
prior audit trail. For each Platform-A product:

1. map its id to the Platform-B id (identity by default)
2. absent on B                        → create
3. present, any compared field differs → update
4. otherwise                          → skip

Products that exist only on B are never touched and produce no outcome.
Comparison is field-exact; B is always overwritten to match A.

Applying a plan pushes each create/update through the target adapter
and yields exactly one SyncOutcome per decision, whether the push
succeeded or not.
Version: 1.0.0
"""
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

import httpx

from catalog_sync.core.constants.sync import PlanAction, SyncAction
from catalog_sync.core.exceptions import CatalogSyncException
from catalog_sync.schemas.products import NormalizedProduct, ReconcileDecision
from catalog_sync.schemas.sync import SyncOutcome
from catalog_sync.services.catalog_adapters import CatalogAdapter
from catalog_sync.utils.hash_utils import compute_content_hash

logger = logging.getLogger("reconciliation")

_APPLIED = {PlanAction.CREATE: SyncAction.CREATED, PlanAction.UPDATE: SyncAction.UPDATED}


class IdentifierMapper(ABC):
    """Maps a Platform-A product id to its Platform-B counterpart id."""

    @abstractmethod
    def to_platform_b(self, tenant_id: str, external_id: str) -> str:
        pass


class IdentityMapper(IdentifierMapper):
    """Both platforms share product identifiers."""

    def to_platform_b(self, tenant_id: str, external_id: str) -> str:
        return external_id


def count_prior_failures(prior_outcomes: Sequence[SyncOutcome], external_id: str) -> int:
    """Consecutive most-recent `failed` outcomes for one product (newest first input)."""
    failures = 0
    for outcome in prior_outcomes:
        if outcome.external_id != external_id:
            continue
        if outcome.action != SyncAction.FAILED:
            break
        failures += 1
    return failures


def decide(
    source: NormalizedProduct,
    target: Optional[NormalizedProduct],
    target_external_id: str,
    prior_failures: int = 0,
) -> ReconcileDecision:
    """Per-product comparison shared by batch and incremental runs."""
    if target is None:
        action, changed = PlanAction.CREATE, []
    else:
        changed = source.differing_fields(target)
        action = PlanAction.UPDATE if changed else PlanAction.SKIP
    return ReconcileDecision(
        external_id=source.external_id,
        target_external_id=target_external_id,
        action=action,
        product=source,
        changed_fields=changed,
        prior_failures=prior_failures,
    )


def plan_reconciliation(
    tenant_id: str,
    source_products: Iterable[NormalizedProduct],
    target_products: Iterable[NormalizedProduct],
    prior_outcomes: Sequence[SyncOutcome] = (),
    mapper: Optional[IdentifierMapper] = None,
) -> List[ReconcileDecision]:
    mapper = mapper or IdentityMapper()
    target_index = {product.external_id: product for product in target_products}
    decisions: List[ReconcileDecision] = []
    seen = set()

    for source in source_products:
        if source.external_id in seen:
            logger.warning(f"Duplicate source product {source.external_id} for {tenant_id}, ignoring repeat")
            continue
        seen.add(source.external_id)
        target_id = mapper.to_platform_b(tenant_id, source.external_id)
        decisions.append(decide(
            source,
            target_index.get(target_id),
            target_id,
            count_prior_failures(prior_outcomes, source.external_id),
        ))
    return decisions


class ReconciliationEngine:
    """Applies a plan against the target adapter and reports outcomes."""

    def __init__(self, target: CatalogAdapter, mapper: Optional[IdentifierMapper] = None) -> None:
        self._target = target
        self.mapper = mapper or IdentityMapper()

    def plan(
        self,
        tenant_id: str,
        source_products: Iterable[NormalizedProduct],
        target_products: Iterable[NormalizedProduct],
        prior_outcomes: Sequence[SyncOutcome] = (),
    ) -> List[ReconcileDecision]:
        return plan_reconciliation(tenant_id, source_products, target_products, prior_outcomes, self.mapper)

    async def apply(self, tenant_id: str, decision: ReconcileDecision, mode: str = "batch") -> SyncOutcome:
        content_hash = compute_content_hash(decision.product.model_dump())
        if decision.action == PlanAction.SKIP:
            return SyncOutcome(
                tenant_id=tenant_id,
                external_id=decision.external_id,
                action=SyncAction.SKIPPED,
                content_hash=content_hash,
                mode=mode,
            )

        pushed = decision.product.model_copy(update={"external_id": decision.target_external_id})
        try:
            await self._target.upsert_product(tenant_id, pushed)
        except (CatalogSyncException, httpx.HTTPError, ValueError) as e:
            logger.warning(
                f"Push failed tenant={tenant_id} product={decision.external_id} "
                f"action={decision.action.value} prior_failures={decision.prior_failures}: {e}"
            )
            return SyncOutcome(
                tenant_id=tenant_id,
                external_id=decision.external_id,
                action=SyncAction.FAILED,
                error_detail=f"{decision.action.value}: {e}",
                content_hash=content_hash,
                mode=mode,
            )

        logger.info(
            f"{_APPLIED[decision.action].value} tenant={tenant_id} product={decision.external_id} "
            f"fields={decision.changed_fields or 'all'}"
        )
        return SyncOutcome(
            tenant_id=tenant_id,
            external_id=decision.external_id,
            action=_APPLIED[decision.action],
            content_hash=content_hash,
            mode=mode,
        )

    async def apply_all(
        self, tenant_id: str, decisions: Sequence[ReconcileDecision], mode: str = "batch"
    ) -> List[SyncOutcome]:
        outcomes = []
        for decision in decisions:
            outcomes.append(await self.apply(tenant_id, decision, mode))
        return outcomes
