"""
Unit tests for the OAuth flow controllers.

Tests cover:
- Handle normalization
- begin_install for both platforms (state persisted, authorize URL shape)
- complete_install happy path, replayed state, forged proof
- Token exchange failures leaving a failed tombstone
- Platform A uninstall
Version: 1.0.0
"""
import time
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from jose import jwt

from catalog_sync.core.constants.sync import CredentialStatus, Platform, TenantStatus
from catalog_sync.core.exceptions import (
    AuthenticationFailed,
    DatabaseTransientError,
    InvalidOrExpiredState,
    InvalidTenantInput,
    TokenExchangeFailed,
    UpstreamAPIError,
    ValidationError,
)
from catalog_sync.core.signatures import HmacSignatureVerifier, SignedTokenVerifier, compute_request_hash
from catalog_sync.schemas.oauth import CallbackProof, OAuthTransaction
from catalog_sync.services.auth_flows import PlatformAHmacFlow, PlatformBPkceFlow, normalize_handle
from catalog_sync.utils.pkce import code_challenge_s256

B_CALLBACK_PATH = "/api/v1/platform-b/callback"


def _txn(platform, tenant="shop-1", state="state-1", code_verifier=None):
    now = datetime.now(timezone.utc)
    return OAuthTransaction(
        state=state,
        platform=platform,
        tenant_hint=tenant,
        code_verifier=code_verifier,
        created_at=now,
        expires_at=now + timedelta(minutes=10),
    )


@pytest.fixture
def hmac_verifier(mock_settings):
    return HmacSignatureVerifier(mock_settings.platform_a_app_key, mock_settings.platform_a_app_secret)


@pytest.fixture
def flow_a(mock_settings, mock_transaction_store, mock_credential_store, mock_tenant_store,
           mock_platform_a_client, hmac_verifier):
    return PlatformAHmacFlow(
        settings=mock_settings,
        transactions=mock_transaction_store,
        credentials=mock_credential_store,
        tenants=mock_tenant_store,
        client=mock_platform_a_client,
        verifier=hmac_verifier,
    )


@pytest.fixture
def flow_b(mock_settings, mock_transaction_store, mock_credential_store, mock_tenant_store,
           mock_platform_b_client):
    return PlatformBPkceFlow(
        settings=mock_settings,
        transactions=mock_transaction_store,
        credentials=mock_credential_store,
        tenants=mock_tenant_store,
        client=mock_platform_b_client,
        verifier=SignedTokenVerifier(
            mock_settings.platform_b_verification_public_key,
            mock_settings.platform_b_verification_algorithms,
        ),
    )


@pytest.fixture
def signed_a_proof(hmac_verifier):
    """Factory for a correctly signed Platform A request."""
    def _make(**params):
        values = {"appkey": "test-app-key", "handle": "shop-1", "timestamp": str(int(time.time())), **params}
        values["sign"] = hmac_verifier.sign(values)
        return CallbackProof(params=values)
    return _make


@pytest.fixture
def b_proof(rsa_key_pair):
    """Factory for a Platform B callback carrying a valid verification token."""
    private_pem, _ = rsa_key_pair

    def _make(code="auth-code", state="state-1", claims=None):
        query = f"code={code}&state={state}"
        payload = {"requestHash": compute_request_hash(B_CALLBACK_PATH, query), **(claims or {})}
        token = jwt.encode(payload, private_pem, algorithm="RS256")
        return CallbackProof(
            params={"code": code, "state": state, "token": token},
            path=B_CALLBACK_PATH,
            query=f"{query}&token={token}",
        )
    return _make


# --------------------------------------------------------------------------
# normalize_handle
# --------------------------------------------------------------------------

@pytest.mark.unit
class TestNormalizeHandle:

    @pytest.mark.parametrize("raw", [
        "shop-1",
        "shop-1.myshopline.com",
        "https://shop-1.myshopline.com/",
        "  shop-1  ",
    ])
    def test_accepted_forms(self, raw):
        assert normalize_handle(raw, "myshopline.com") == "shop-1"

    @pytest.mark.parametrize("raw", ["", None, "shop_1", "-shop", "shop.other.com", "a/b"])
    def test_rejected_forms(self, raw):
        with pytest.raises(InvalidTenantInput):
            normalize_handle(raw, "myshopline.com")


# --------------------------------------------------------------------------
# Platform A
# --------------------------------------------------------------------------

@pytest.mark.unit
class TestPlatformABeginInstall:

    @pytest.mark.asyncio
    async def test_persists_state_and_builds_authorize_url(self, flow_a, mock_transaction_store, signed_a_proof):
        start = await flow_a.begin_install("shop-1", signed_a_proof())

        txn, = mock_transaction_store.create.call_args.args
        assert txn.state == start.state
        assert txn.platform == Platform.PLATFORM_A
        assert txn.tenant_hint == "shop-1"
        assert mock_transaction_store.create.call_args.kwargs["ttl_seconds"] == 600

        assert start.authorize_url.startswith("https://shop-1.myshopline.com/admin/oauth-web/#/oauth/authorize?")
        query = parse_qs(start.authorize_url.split("?", 1)[1])
        assert query["appKey"] == ["test-app-key"]
        assert query["state"] == [start.state]
        assert query["responseType"] == ["code"]

    @pytest.mark.asyncio
    async def test_unsigned_install_request_rejected(self, flow_a, mock_transaction_store, signed_a_proof):
        proof = signed_a_proof()
        proof.params["sign"] = "0" * 64

        with pytest.raises(AuthenticationFailed):
            await flow_a.begin_install("shop-1", proof)
        mock_transaction_store.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_handle_rejected(self, flow_a, mock_transaction_store):
        with pytest.raises(InvalidTenantInput):
            await flow_a.begin_install("not a shop!")
        mock_transaction_store.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_each_install_gets_a_fresh_state(self, flow_a):
        first = await flow_a.begin_install("shop-1")
        second = await flow_a.begin_install("shop-1")
        assert first.state != second.state


@pytest.mark.unit
class TestPlatformACompleteInstall:

    @pytest.mark.asyncio
    async def test_happy_path_stores_credential(
        self, flow_a, mock_transaction_store, mock_credential_store, mock_tenant_store,
        mock_platform_a_client, signed_a_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_A)

        result = await flow_a.complete_install("state-1", "auth-code", signed_a_proof(code="auth-code", state="state-1"))

        assert result.tenant_id == "shop-1"
        assert result.status == CredentialStatus.ACTIVE
        mock_platform_a_client.create_token.assert_awaited_once_with("shop-1", "auth-code")
        record = mock_credential_store.save_credential.call_args.args[0]
        assert record.access_token == "a-access"
        assert record.refresh_token == "a-refresh"
        assert record.expires_at > datetime.now(timezone.utc) + timedelta(days=6)
        mock_tenant_store.upsert_tenant.assert_awaited_once_with("shop-1")
        mock_transaction_store.delete.assert_awaited_once_with("state-1")

    @pytest.mark.asyncio
    async def test_replayed_state_rejected(
        self, flow_a, mock_transaction_store, mock_platform_a_client, signed_a_proof,
    ):
        mock_transaction_store.claim.side_effect = [_txn(Platform.PLATFORM_A), None]
        proof = signed_a_proof(code="auth-code", state="state-1")

        await flow_a.complete_install("state-1", "auth-code", proof)
        with pytest.raises(InvalidOrExpiredState):
            await flow_a.complete_install("state-1", "auth-code", proof)

        assert mock_platform_a_client.create_token.await_count == 1

    @pytest.mark.asyncio
    async def test_forged_callback_does_not_touch_state(self, flow_a, mock_transaction_store, signed_a_proof):
        proof = signed_a_proof(code="auth-code", state="state-1")
        proof.params["code"] = "attacker-code"

        with pytest.raises(AuthenticationFailed):
            await flow_a.complete_install("state-1", "attacker-code", proof)
        mock_transaction_store.claim.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_code_is_validation_error(self, flow_a, signed_a_proof):
        with pytest.raises(ValidationError):
            await flow_a.complete_install("state-1", None, signed_a_proof(state="state-1"))

    @pytest.mark.asyncio
    async def test_missing_state_is_validation_error(self, flow_a, signed_a_proof):
        with pytest.raises(ValidationError):
            await flow_a.complete_install(None, "auth-code", signed_a_proof(code="auth-code"))

    @pytest.mark.asyncio
    async def test_state_from_other_platform_rejected(self, flow_a, mock_transaction_store, signed_a_proof):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_B)

        with pytest.raises(InvalidOrExpiredState):
            await flow_a.complete_install("state-1", "auth-code", signed_a_proof(code="auth-code", state="state-1"))

    @pytest.mark.asyncio
    async def test_exchange_failure_marks_transaction_failed(
        self, flow_a, mock_transaction_store, mock_credential_store, mock_platform_a_client, signed_a_proof,
    ):
        txn = _txn(Platform.PLATFORM_A)
        mock_transaction_store.claim.return_value = txn
        mock_platform_a_client.create_token.side_effect = UpstreamAPIError("platform_a", "bad code", 400)

        with pytest.raises(TokenExchangeFailed) as exc_info:
            await flow_a.complete_install("state-1", "auth-code", signed_a_proof(code="auth-code", state="state-1"))

        assert exc_info.value.status_code == 400
        mock_transaction_store.mark_failed.assert_awaited_once_with(txn)
        mock_transaction_store.delete.assert_not_awaited()
        mock_credential_store.save_credential.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_incomplete_token_response_is_exchange_failure(
        self, flow_a, mock_transaction_store, mock_platform_a_client, signed_a_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_A)
        mock_platform_a_client.create_token.return_value = {"access_token": "only-this"}

        with pytest.raises(TokenExchangeFailed):
            await flow_a.complete_install("state-1", "auth-code", signed_a_proof(code="auth-code", state="state-1"))
        mock_transaction_store.mark_failed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_callback_for_other_shop_rejected(
        self, flow_a, mock_transaction_store, mock_platform_a_client, signed_a_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_A, tenant="shop-1")

        with pytest.raises(TokenExchangeFailed):
            await flow_a.complete_install(
                "state-1", "auth-code", signed_a_proof(handle="shop-2", code="auth-code", state="state-1")
            )
        mock_platform_a_client.create_token.assert_not_awaited()
        mock_transaction_store.mark_failed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_credential_write_failure_marks_transaction_failed(
        self, flow_a, mock_transaction_store, mock_credential_store, mock_tenant_store, signed_a_proof,
    ):
        txn = _txn(Platform.PLATFORM_A)
        mock_transaction_store.claim.return_value = txn
        mock_credential_store.save_credential.side_effect = DatabaseTransientError("supabase down")

        with pytest.raises(DatabaseTransientError):
            await flow_a.complete_install("state-1", "auth-code", signed_a_proof(code="auth-code", state="state-1"))

        mock_transaction_store.mark_failed.assert_awaited_once_with(txn)
        mock_transaction_store.delete.assert_not_awaited()
        mock_tenant_store.upsert_tenant.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tenant_write_failure_marks_transaction_failed(
        self, flow_a, mock_transaction_store, mock_tenant_store, signed_a_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_A)
        mock_tenant_store.upsert_tenant.side_effect = DatabaseTransientError("supabase down")

        with pytest.raises(DatabaseTransientError):
            await flow_a.complete_install("state-1", "auth-code", signed_a_proof(code="auth-code", state="state-1"))

        mock_transaction_store.delete.assert_not_awaited()
        mock_transaction_store.mark_failed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tombstone_failure_keeps_original_error(
        self, flow_a, mock_transaction_store, mock_credential_store, signed_a_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_A)
        mock_credential_store.save_credential.side_effect = DatabaseTransientError("supabase down")
        mock_transaction_store.mark_failed.side_effect = DatabaseTransientError("redis down")

        with pytest.raises(DatabaseTransientError, match="supabase down"):
            await flow_a.complete_install("state-1", "auth-code", signed_a_proof(code="auth-code", state="state-1"))

    @pytest.mark.asyncio
    async def test_state_delete_failure_still_completes(
        self, flow_a, mock_transaction_store, mock_credential_store, signed_a_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_A)
        mock_transaction_store.delete.side_effect = DatabaseTransientError("redis down")

        result = await flow_a.complete_install(
            "state-1", "auth-code", signed_a_proof(code="auth-code", state="state-1")
        )

        assert result.status == CredentialStatus.ACTIVE
        mock_credential_store.save_credential.assert_awaited_once()
        mock_transaction_store.mark_failed.assert_not_awaited()


@pytest.mark.unit
class TestPlatformAUninstall:

    @pytest.mark.asyncio
    async def test_revokes_tenant_and_credentials(
        self, flow_a, mock_tenant_store, mock_credential_store, signed_a_proof,
    ):
        tenant_id = await flow_a.uninstall(signed_a_proof())

        assert tenant_id == "shop-1"
        mock_tenant_store.mark_revoked.assert_awaited_once_with("shop-1")
        mock_credential_store.revoke_all.assert_awaited_once_with("shop-1")

    @pytest.mark.asyncio
    async def test_unsigned_uninstall_rejected(self, flow_a, mock_tenant_store, signed_a_proof):
        proof = signed_a_proof()
        proof.params["handle"] = "victim-shop"

        with pytest.raises(AuthenticationFailed):
            await flow_a.uninstall(proof)
        mock_tenant_store.mark_revoked.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_uninstall_url_rejected(self, flow_a, mock_tenant_store, signed_a_proof):
        proof = signed_a_proof(timestamp=str(int(time.time()) - 3600))

        with pytest.raises(AuthenticationFailed):
            await flow_a.uninstall(proof)
        mock_tenant_store.mark_revoked.assert_not_awaited()


# --------------------------------------------------------------------------
# Platform B
# --------------------------------------------------------------------------

@pytest.mark.unit
class TestPlatformBBeginInstall:

    @pytest.mark.asyncio
    async def test_pkce_challenge_in_authorize_url(self, flow_b, mock_tenant_store, mock_transaction_store):
        mock_tenant_store.get_tenant.return_value = {"tenant_id": "shop-1", "status": TenantStatus.ACTIVE.value}

        start = await flow_b.begin_install("shop-1")

        txn, = mock_transaction_store.create.call_args.args
        assert txn.platform == Platform.PLATFORM_B
        assert txn.code_verifier
        url = urlparse(start.authorize_url)
        assert f"{url.scheme}://{url.netloc}{url.path}" == "https://auth.platform-b.test/authorize"
        query = parse_qs(url.query)
        assert query["code_challenge"] == [code_challenge_s256(txn.code_verifier)]
        assert query["code_challenge_method"] == ["S256"]
        assert query["client_id"] == ["test-client-id"]
        assert query["state"] == [start.state]
        assert txn.code_verifier not in start.authorize_url

    @pytest.mark.asyncio
    async def test_unknown_tenant_rejected(self, flow_b, mock_tenant_store, mock_transaction_store):
        mock_tenant_store.get_tenant.return_value = None

        with pytest.raises(InvalidTenantInput):
            await flow_b.begin_install("shop-1")
        mock_transaction_store.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_revoked_tenant_rejected(self, flow_b, mock_tenant_store):
        mock_tenant_store.get_tenant.return_value = {"tenant_id": "shop-1", "status": TenantStatus.REVOKED.value}

        with pytest.raises(InvalidTenantInput):
            await flow_b.begin_install("shop-1")


@pytest.mark.unit
class TestPlatformBCompleteInstall:

    @pytest.mark.asyncio
    async def test_happy_path_links_installation(
        self, flow_b, mock_transaction_store, mock_credential_store, mock_tenant_store,
        mock_platform_b_client, b_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_B, code_verifier="verifier-1")

        result = await flow_b.complete_install("state-1", "auth-code", b_proof(claims={"installationId": "inst-9"}))

        assert result.platform == Platform.PLATFORM_B
        mock_platform_b_client.exchange_code.assert_awaited_once_with("auth-code", "verifier-1")
        record = mock_credential_store.save_credential.call_args.args[0]
        assert record.platform == Platform.PLATFORM_B
        assert record.access_token == "b-access"
        mock_tenant_store.link_platform_b.assert_awaited_once_with("shop-1", "inst-9")
        mock_transaction_store.delete.assert_awaited_once_with("state-1")

    @pytest.mark.asyncio
    async def test_installation_id_from_token_response(
        self, flow_b, mock_transaction_store, mock_tenant_store, mock_platform_b_client, b_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_B, code_verifier="verifier-1")
        mock_platform_b_client.exchange_code.return_value = {
            "accessToken": "b-access", "refreshToken": "b-refresh", "expiresIn": 3600, "installationId": "inst-7",
        }

        await flow_b.complete_install("state-1", "auth-code", b_proof())

        mock_tenant_store.link_platform_b.assert_awaited_once_with("shop-1", "inst-7")

    @pytest.mark.asyncio
    async def test_missing_installation_id_fails_exchange(
        self, flow_b, mock_transaction_store, mock_credential_store, b_proof,
    ):
        mock_transaction_store.claim.return_value = _txn(Platform.PLATFORM_B, code_verifier="verifier-1")

        with pytest.raises(TokenExchangeFailed):
            await flow_b.complete_install("state-1", "auth-code", b_proof())
        mock_transaction_store.mark_failed.assert_awaited_once()
        mock_credential_store.save_credential.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_link_failure_marks_transaction_failed(
        self, flow_b, mock_transaction_store, mock_tenant_store, b_proof,
    ):
        txn = _txn(Platform.PLATFORM_B, code_verifier="verifier-1")
        mock_transaction_store.claim.return_value = txn
        mock_tenant_store.link_platform_b.side_effect = DatabaseTransientError("supabase down")

        with pytest.raises(DatabaseTransientError):
            await flow_b.complete_install("state-1", "auth-code", b_proof(claims={"installationId": "inst-9"}))

        mock_transaction_store.mark_failed.assert_awaited_once_with(txn)
        mock_transaction_store.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tampered_query_rejected_before_claim(self, flow_b, mock_transaction_store, b_proof):
        proof = b_proof(claims={"installationId": "inst-9"})
        proof.query = proof.query.replace("code=auth-code", "code=other-code")

        with pytest.raises(AuthenticationFailed):
            await flow_b.complete_install("state-1", "other-code", proof)
        mock_transaction_store.claim.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_replayed_state_rejected(self, flow_b, mock_transaction_store, mock_platform_b_client, b_proof):
        mock_transaction_store.claim.return_value = None

        with pytest.raises(InvalidOrExpiredState):
            await flow_b.complete_install("state-1", "auth-code", b_proof(claims={"installationId": "inst-9"}))
        mock_platform_b_client.exchange_code.assert_not_awaited()
