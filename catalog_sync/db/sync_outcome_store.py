"""
Sync outcome store — append-only audit trail of reconciliation decisions.

One row per reconciled product per run. Rows are only ever inserted.
Version: 1.0.0
"""

import logging
from typing import List, Optional

from catalog_sync.core.constants.sync import SYNC_OUTCOMES_TABLE
from catalog_sync.db.base_store import BaseStore
from catalog_sync.schemas.sync import SyncOutcome

logger = logging.getLogger("sync_outcome_store")


class SyncOutcomeStore(BaseStore):

    async def record_outcomes(self, outcomes: List[SyncOutcome]) -> None:
        if not outcomes:
            return
        rows = [outcome.model_dump(mode="json") for outcome in outcomes]
        await self._insert(SYNC_OUTCOMES_TABLE, rows)
        logger.debug(f"Recorded {len(rows)} sync outcomes")

    async def list_recent(
        self,
        tenant_id: str,
        external_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[SyncOutcome]:
        """Newest-first outcomes for a tenant, optionally one product."""
        filters = {"tenant_id": tenant_id}
        if external_id is not None:
            filters["external_id"] = external_id
        rows = await self._select(
            SYNC_OUTCOMES_TABLE,
            filters=filters,
            order_by="timestamp",
            descending=True,
            limit=limit,
        )
        return [SyncOutcome(**row) for row in rows]
