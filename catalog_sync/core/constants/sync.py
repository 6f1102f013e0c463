"""
Sync constants — platforms, lifecycle states, outcome actions, trigger kinds.

Shared enums and table names for the credential lifecycle and the
catalog reconciliation pipeline.
Version: 1.0.0
"""
from enum import Enum


class Platform(str, Enum):
    PLATFORM_A = "platform_a"
    PLATFORM_B = "platform_b"


class CredentialStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REFRESHING = "refreshing"
    REVOKED = "revoked"
    NEEDS_REAUTH = "needs_reauth"


class TenantStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class TransactionState(str, Enum):
    """OAuth transaction states between authorize redirect and callback."""
    AUTHORIZE_ISSUED = "authorize_issued"
    CALLBACK_RECEIVED = "callback_received"
    TOKEN_EXCHANGED = "token_exchanged"
    FAILED = "failed"


class PlanAction(str, Enum):
    """Decision made by the reconciliation planner."""
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class SyncAction(str, Enum):
    """Recorded outcome of one reconciled product."""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class TriggerKind(str, Enum):
    CALLBACK = "callback"
    WEBHOOK = "webhook"
    SCHEDULE = "schedule"


class TriggerAction(str, Enum):
    INSTALL_BEGIN = "install_begin"
    INSTALL_COMPLETE = "install_complete"
    UNINSTALL = "uninstall"
    PRODUCT_CHANGED = "product_changed"
    REFRESH_TOKENS = "refresh_tokens"
    FULL_SYNC = "full_sync"


# Fields compared between platforms; any difference triggers an update
COMPARED_FIELDS: tuple = ("title", "description", "price")

# Supabase tables
TENANTS_TABLE: str = "tenants"
CREDENTIALS_TABLE: str = "platform_credentials"
SYNC_OUTCOMES_TABLE: str = "sync_outcomes"

# Redis key prefix for OAuth transactions
OAUTH_TRANSACTION_PREFIX: str = "oauth_txn"

# External id recorded for tenant-level failures, before any product is known
TENANT_LEVEL_EXTERNAL_ID: str = "*"
