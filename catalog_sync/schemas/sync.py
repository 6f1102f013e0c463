"""
Sync schemas — outcome records and run summaries.

Sync pipeline schemas.

Defines the append-only outcome record and the result sets returned by
batch runs, incremental runs and refresh sweeps.
Version: 1.0.0
"""
from datetime import datetime, timezone
from typing import Optional, List, Dict

from pydantic import BaseModel, Field

from catalog_sync.core.constants.sync import SyncAction


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncOutcome(BaseModel):
    """One audit record of a reconciliation decision and its result."""
    tenant_id: str
    external_id: str
    action: SyncAction
    timestamp: datetime = Field(default_factory=_utcnow)
    error_detail: Optional[str] = None
    content_hash: Optional[str] = None
    mode: str = "batch"


class SyncRunResult(BaseModel):
    mode: str
    tenants_processed: int = 0
    tenants_skipped: List[str] = []
    outcomes: List[SyncOutcome] = []

    @property
    def counts(self) -> Dict[str, int]:
        totals = {action.value: 0 for action in SyncAction}
        for outcome in self.outcomes:
            totals[outcome.action.value] += 1
        return totals

    def summary(self) -> dict:
        return {
            "mode": self.mode,
            "tenants_processed": self.tenants_processed,
            "tenants_skipped": self.tenants_skipped,
            "counts": self.counts,
        }


class RefreshSweepResult(BaseModel):
    checked: int = 0
    refreshed: List[str] = []
    failed: List[str] = []
    escalated: List[str] = []

    def summary(self) -> dict:
        return {
            "checked": self.checked,
            "refreshed": len(self.refreshed),
            "failed": len(self.failed),
            "escalated": len(self.escalated),
        }


class SyncOutcomeListResponse(BaseModel):
    tenant_id: str
    outcomes: List[SyncOutcome]
    total: int
