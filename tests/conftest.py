"""
Pytest configuration and shared fixtures for Catalog Sync tests.

Provides settings, mock Supabase/Redis clients, mocked stores, a
throwaway RSA key pair for verification tokens, and sample products.
Version: 1.0.0
"""
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from catalog_sync.core.config import Settings
from catalog_sync.core.constants.sync import CredentialStatus, Platform
from catalog_sync.schemas.oauth import CredentialRecord
from catalog_sync.schemas.products import NormalizedProduct


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def rsa_key_pair():
    """(private PEM, public PEM) used to sign and verify Platform B tokens."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return private_pem, public_pem


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_settings(rsa_key_pair):
    """Settings object with test defaults (no real credentials)."""
    _, public_pem = rsa_key_pair
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="test-supabase-key",
        platform_a_app_key="test-app-key",
        platform_a_app_secret="test-app-secret",
        platform_a_redirect_uri="https://sync.test/api/v1/platform-a/callback",
        platform_a_domain_suffix="myshopline.com",
        platform_b_client_id="test-client-id",
        platform_b_client_secret="test-client-secret",
        platform_b_redirect_uri="https://sync.test/api/v1/platform-b/callback",
        platform_b_api_base_url="https://api.platform-b.test",
        platform_b_authorize_url="https://auth.platform-b.test/authorize",
        platform_b_token_url="https://auth.platform-b.test/token",
        platform_b_verification_public_key=public_pem,
        platform_b_verification_algorithms=["RS256"],
        redis_url="redis://localhost:6379/15",
        oauth_state_ttl_seconds=600,
        platform_call_timeout=5.0,
    )


# ---------------------------------------------------------------------------
# Clients (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_client():
    """Mocked SupabaseClient with a chainable table builder."""
    client = MagicMock()
    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.insert.return_value = mock_table
    mock_table.upsert.return_value = mock_table
    mock_table.update.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.in_.return_value = mock_table
    mock_table.lte.return_value = mock_table
    mock_table.order.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])
    client.client.table.return_value = mock_table
    return client


@pytest.fixture
def mock_platform_a_client():
    client = MagicMock()
    client.shop_url = MagicMock(side_effect=lambda handle: f"https://{handle}.myshopline.com")
    client.create_token = AsyncMock(return_value={
        "access_token": "a-access", "refresh_token": "a-refresh", "expires_in": 86400 * 7,
    })
    client.refresh_token = AsyncMock(return_value={
        "access_token": "a-access-2", "refresh_token": "a-refresh-2", "expires_in": 86400 * 7,
    })
    client.list_products = AsyncMock(return_value=[])
    client.get_product = AsyncMock(return_value=None)
    client.update_product = AsyncMock(return_value={})
    return client


@pytest.fixture
def mock_platform_b_client():
    client = MagicMock()
    client.exchange_code = AsyncMock(return_value={
        "access_token": "b-access", "refresh_token": "b-refresh", "expires_in": 3600,
    })
    client.refresh_token = AsyncMock(return_value={
        "access_token": "b-access-2", "refresh_token": "b-refresh-2", "expires_in": 3600,
    })
    client.list_products = AsyncMock(return_value=[])
    client.get_product = AsyncMock(return_value=None)
    client.put_product = AsyncMock(return_value={})
    return client


# ---------------------------------------------------------------------------
# DB Stores (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_credential_store():
    store = MagicMock()
    store.get_credential = AsyncMock(return_value=None)
    store.save_credential = AsyncMock()
    store.replace_tokens = AsyncMock()
    store.record_refresh_failure = AsyncMock(return_value=1)
    store.set_status = AsyncMock()
    store.list_expiring = AsyncMock(return_value=[])
    store.revoke_all = AsyncMock()
    return store


@pytest.fixture
def mock_tenant_store():
    store = MagicMock()
    store.get_tenant = AsyncMock(return_value=None)
    store.upsert_tenant = AsyncMock()
    store.link_platform_b = AsyncMock()
    store.list_active_tenants = AsyncMock(return_value=[])
    store.mark_revoked = AsyncMock()
    return store


@pytest.fixture
def mock_outcome_store():
    store = MagicMock()
    store.record_outcomes = AsyncMock()
    store.list_recent = AsyncMock(return_value=[])
    return store


@pytest.fixture
def mock_transaction_store():
    store = MagicMock()
    store.create = AsyncMock()
    store.claim = AsyncMock(return_value=None)
    store.mark_failed = AsyncMock()
    store.delete = AsyncMock()
    return store


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def active_credential():
    """Factory for an active credential expiring `hours` from now."""
    def _make(tenant_id="shop-1", platform=Platform.PLATFORM_A, hours=12, **overrides):
        values = {
            "tenant_id": tenant_id,
            "platform": platform,
            "access_token": f"{platform.value}-token",
            "refresh_token": f"{platform.value}-refresh",
            "expires_at": datetime.now(timezone.utc) + timedelta(hours=hours),
            "status": CredentialStatus.ACTIVE,
        }
        values.update(overrides)
        return CredentialRecord(**values)
    return _make


@pytest.fixture
def sample_product():
    """Factory for a NormalizedProduct."""
    def _make(external_id="p1", title="Widget", description="A widget", price=10.0):
        return NormalizedProduct(external_id=external_id, title=title, description=description, price=price)
    return _make
