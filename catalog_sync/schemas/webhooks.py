"""
Webhook and trigger schemas.

Inbound invocations are reduced to a typed Trigger once at the HTTP or
scheduler boundary.
Version: 1.0.0
"""
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from catalog_sync.core.constants.sync import TriggerAction, TriggerKind


class ProductWebhookPayload(BaseModel):
    """Single-product change notification sent by Platform A."""
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    handle: str = Field(min_length=1)
    product_id: str = Field(alias="productId", min_length=1)


class Trigger(BaseModel):
    kind: TriggerKind
    action: TriggerAction
    payload: Dict[str, Any] = {}
