"""
Constants package — re-exports from domain-specific modules.

Usage:
    from catalog_sync.core.constants.sync import Platform, SyncAction
    # or:
    from catalog_sync.core.constants import Platform
Version: 1.0.0
"""

from catalog_sync.core.constants import sync
from catalog_sync.core.constants.sync import (
    Platform,
    CredentialStatus,
    TenantStatus,
    TransactionState,
    PlanAction,
    SyncAction,
    TriggerKind,
    TriggerAction,
    COMPARED_FIELDS,
)

__all__ = [
    "sync",
    "Platform",
    "CredentialStatus",
    "TenantStatus",
    "TransactionState",
    "PlanAction",
    "SyncAction",
    "TriggerKind",
    "TriggerAction",
    "COMPARED_FIELDS",
]
