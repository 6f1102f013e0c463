"""
Product schemas — normalized product shape and reconciliation decisions.
Version: 1.0.0
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from catalog_sync.core.constants.sync import COMPARED_FIELDS, PlanAction


class NormalizedProduct(BaseModel):
    """Platform-agnostic product shape produced and consumed by every adapter."""
    external_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    updated_at: Optional[datetime] = None

    def compared_values(self) -> dict:
        return {field: getattr(self, field) for field in COMPARED_FIELDS}

    def differing_fields(self, other: "NormalizedProduct") -> list[str]:
        """Fields whose values differ exactly between self and other."""
        return [
            field for field in COMPARED_FIELDS
            if getattr(self, field) != getattr(other, field)
        ]


class ReconcileDecision(BaseModel):
    external_id: str
    target_external_id: str
    action: PlanAction
    product: NormalizedProduct
    changed_fields: list[str] = []
    prior_failures: int = 0
