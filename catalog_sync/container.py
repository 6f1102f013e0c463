"""
Lazy DI container — cached construction of clients, stores, and services.

Lazy dependency-injection container.

Every component receives its collaborators through its constructor;
these getters are the only place that wires them together. Works in
both FastAPI (async) and Celery (sync) contexts.
Import individual getters to avoid circular imports.
Version: 1.0.0
"""

from functools import lru_cache

import redis
import redis.asyncio as aioredis

from catalog_sync.core.config import settings
from catalog_sync.core.constants.sync import Platform
from catalog_sync.core.signatures import HmacSignatureVerifier, SignedTokenVerifier
from catalog_sync.clients.supabase_client import SupabaseClient
from catalog_sync.clients.platform_a_client import PlatformAClient
from catalog_sync.clients.platform_b_client import PlatformBClient
from catalog_sync.db.credential_store import CredentialStore
from catalog_sync.db.tenant_store import TenantStore
from catalog_sync.db.oauth_transaction_store import OAuthTransactionStore
from catalog_sync.db.sync_outcome_store import SyncOutcomeStore
from catalog_sync.services.auth_flows import PlatformAHmacFlow, PlatformBPkceFlow
from catalog_sync.services.catalog_adapters import PlatformACatalogAdapter, PlatformBCatalogAdapter
from catalog_sync.services.reconciliation import ReconciliationEngine
from catalog_sync.services.sync_orchestrator import SyncOrchestrator
from catalog_sync.services.token_refresh_service import TokenRefreshService
from catalog_sync.services.trigger_dispatcher import TriggerDispatcher


# -- Clients ---------------------------------------------------------------

@lru_cache(maxsize=1)
def get_supabase_client():
    return SupabaseClient(settings)


@lru_cache(maxsize=1)
def get_redis_client():
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


# Web process only: bound to the event loop that first uses it
@lru_cache(maxsize=1)
def get_async_redis_client():
    return aioredis.Redis.from_url(settings.redis_url, decode_responses=True)


@lru_cache(maxsize=1)
def get_platform_a_client():
    return PlatformAClient(settings)


@lru_cache(maxsize=1)
def get_platform_b_client():
    return PlatformBClient(settings)


# -- Verifiers -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_hmac_verifier():
    return HmacSignatureVerifier(
        app_key=settings.platform_a_app_key or "",
        app_secret=settings.platform_a_app_secret or "",
        max_age_seconds=settings.platform_a_signature_max_age_seconds,
    )


@lru_cache(maxsize=1)
def get_signed_token_verifier():
    return SignedTokenVerifier(
        public_key=settings.platform_b_verification_public_key,
        algorithms=settings.platform_b_verification_algorithms,
    )


# -- DB Stores -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_credential_store():
    return CredentialStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_tenant_store():
    return TenantStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_sync_outcome_store():
    return SyncOutcomeStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_oauth_transaction_store():
    return OAuthTransactionStore(get_async_redis_client())


# -- OAuth -----------------------------------------------------------------

@lru_cache(maxsize=1)
def get_platform_a_flow():
    return PlatformAHmacFlow(
        settings=settings,
        transactions=get_oauth_transaction_store(),
        credentials=get_credential_store(),
        tenants=get_tenant_store(),
        client=get_platform_a_client(),
        verifier=get_hmac_verifier(),
    )


@lru_cache(maxsize=1)
def get_platform_b_flow():
    return PlatformBPkceFlow(
        settings=settings,
        transactions=get_oauth_transaction_store(),
        credentials=get_credential_store(),
        tenants=get_tenant_store(),
        client=get_platform_b_client(),
        verifier=get_signed_token_verifier(),
    )


@lru_cache(maxsize=1)
def get_token_refresh_service():
    return TokenRefreshService(
        credentials=get_credential_store(),
        platform_a=get_platform_a_client(),
        platform_b=get_platform_b_client(),
        window_hours=settings.token_refresh_window_hours,
        max_failures=settings.token_refresh_max_failures,
    )


# -- Sync ------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_sync_orchestrator():
    target = PlatformBCatalogAdapter(get_credential_store(), get_platform_b_client())
    return SyncOrchestrator(
        tenants=get_tenant_store(),
        outcomes=get_sync_outcome_store(),
        source=PlatformACatalogAdapter(get_credential_store(), get_platform_a_client()),
        target=target,
        engine=ReconciliationEngine(target),
        max_workers=settings.sync_max_workers,
    )


# -- Dispatch --------------------------------------------------------------

def _flows():
    return {
        Platform.PLATFORM_A: get_platform_a_flow(),
        Platform.PLATFORM_B: get_platform_b_flow(),
    }


@lru_cache(maxsize=1)
def get_web_dispatcher():
    """Web process: callbacks run inline, webhooks and schedules go to Celery."""
    # Lazy import: celery tasks import this module
    from catalog_sync.celery_app.tasks.deferral import defer_trigger

    return TriggerDispatcher(flows=_flows(), deferrer=defer_trigger)


@lru_cache(maxsize=1)
def get_worker_dispatcher():
    """Worker process: everything runs inline."""
    return TriggerDispatcher(
        flows=_flows(),
        orchestrator=get_sync_orchestrator(),
        refresh_service=get_token_refresh_service(),
    )
