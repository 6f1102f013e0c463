"""
OAuth flows — install → authorize → callback → token exchange → store.

Both platform flavours sit behind one AuthFlow interface:

- PlatformAHmacFlow: custom flow; install and callback requests are
  HMAC-signed query strings, the token endpoint takes signed headers.
- PlatformBPkceFlow: standard authorization-code flow with PKCE; the
  callback carries a signed verification token.

Per-state lifecycle:
    authorize_issued → callback_received → token_exchanged (deleted)
                                         → failed (tombstone until TTL)

A failed exchange and a failed write of the credential or tenant link
both end in `failed`, so no state is left in callback_received.

complete_install() verifies the proof before touching the state, so a
forged callback cannot burn a legitimate user's state.
Version: 1.0.0
"""
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from catalog_sync.core.config import Settings
from catalog_sync.core.constants.sync import CredentialStatus, Platform, TenantStatus
from catalog_sync.core.exceptions import (
    CatalogSyncException,
    InvalidOrExpiredState,
    InvalidTenantInput,
    RetryableError,
    TokenExchangeFailed,
    ValidationError,
)
from catalog_sync.core.signatures import HmacSignatureVerifier, SignedTokenVerifier
from catalog_sync.clients.platform_a_client import PlatformAClient
from catalog_sync.clients.platform_b_client import PlatformBClient
from catalog_sync.db.credential_store import CredentialStore
from catalog_sync.db.oauth_transaction_store import OAuthTransactionStore
from catalog_sync.db.tenant_store import TenantStore
from catalog_sync.schemas.oauth import (
    CallbackProof,
    CredentialRecord,
    InstallResult,
    InstallStart,
    OAuthTransaction,
    TokenGrant,
)
from catalog_sync.utils.pkce import code_challenge_s256, generate_code_verifier, generate_state

logger = logging.getLogger("auth_flows")

HANDLE_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*$")


def normalize_handle(raw: Optional[str], domain_suffix: str) -> str:
    """
    Reduce a shop hint to its handle.

    Accepts "my-shop", "my-shop.<suffix>" or "https://my-shop.<suffix>/".
    Raises InvalidTenantInput for anything else.
    """
    if not raw:
        raise InvalidTenantInput("Missing shop handle")
    hint = raw.strip().replace("https://", "").replace("http://", "").rstrip("/")
    suffix = f".{domain_suffix}"
    if hint.endswith(suffix):
        hint = hint[: -len(suffix)]
    if not HANDLE_PATTERN.match(hint):
        raise InvalidTenantInput(f"Invalid shop handle: {raw!r}")
    return hint


class AuthFlow(ABC):
    """Install/callback state machine shared by both platforms."""

    platform: Platform

    def __init__(
        self,
        settings: Settings,
        transactions: OAuthTransactionStore,
        credentials: CredentialStore,
        tenants: TenantStore,
    ) -> None:
        self._settings = settings
        self._transactions = transactions
        self._credentials = credentials
        self._tenants = tenants
        self._state_ttl = settings.oauth_state_ttl_seconds

    # -- platform hooks ----------------------------------------------------

    @abstractmethod
    async def validate_tenant_hint(self, tenant_hint: str) -> str:
        """Return the canonical tenant id or raise InvalidTenantInput."""

    @abstractmethod
    def build_authorize_url(self, txn: OAuthTransaction) -> str:
        pass

    @abstractmethod
    def verify_callback(self, proof: CallbackProof) -> dict:
        """Raise ValidationError/AuthenticationFailed; return verified claims."""

    @abstractmethod
    async def exchange_code(self, txn: OAuthTransaction, code: str, claims: dict) -> TokenGrant:
        pass

    @abstractmethod
    async def on_tokens_stored(self, txn: OAuthTransaction, grant: TokenGrant, claims: dict) -> None:
        pass

    def verify_install_request(self, proof: CallbackProof) -> None:
        """Install requests are unsigned unless a platform says otherwise."""

    # -- state machine -----------------------------------------------------

    async def begin_install(self, tenant_hint: str, proof: Optional[CallbackProof] = None) -> InstallStart:
        if proof is not None:
            self.verify_install_request(proof)
        tenant_id = await self.validate_tenant_hint(tenant_hint)

        now = datetime.now(timezone.utc)
        txn = OAuthTransaction(
            state=generate_state(),
            platform=self.platform,
            tenant_hint=tenant_id,
            code_verifier=self._new_code_verifier(),
            created_at=now,
            expires_at=now + timedelta(seconds=self._state_ttl),
        )
        await self._transactions.create(txn, ttl_seconds=self._state_ttl)
        logger.info("install begun platform=%s tenant=%s", self.platform.value, tenant_id)
        return InstallStart(state=txn.state, authorize_url=self.build_authorize_url(txn))

    def _new_code_verifier(self) -> Optional[str]:
        return None

    async def complete_install(
        self, state: Optional[str], code: Optional[str], proof: CallbackProof
    ) -> InstallResult:
        claims = self.verify_callback(proof)
        if not state or not code:
            raise ValidationError("Missing state or code")

        txn = await self._transactions.claim(state)
        if txn is None or txn.platform != self.platform:
            logger.warning("install callback with unknown or replayed state platform=%s", self.platform.value)
            raise InvalidOrExpiredState("OAuth state is invalid, expired or already used")

        try:
            grant = await self.exchange_code(txn, code, claims)
        except TokenExchangeFailed as e:
            await self._mark_failed_quietly(txn)
            logger.error(f"Token exchange failed platform={self.platform.value} tenant={txn.tenant_hint}: {e}")
            raise
        except (RetryableError, ValidationError, ValueError) as e:
            await self._mark_failed_quietly(txn)
            logger.error(f"Token exchange failed platform={self.platform.value} tenant={txn.tenant_hint}: {e}")
            raise TokenExchangeFailed(self.platform.value, str(e), getattr(e, "status_code", None)) from e

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=grant.expires_in)
        try:
            await self._credentials.save_credential(CredentialRecord(
                tenant_id=txn.tenant_hint,
                platform=self.platform,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_at=expires_at,
                status=CredentialStatus.ACTIVE,
            ))
            await self.on_tokens_stored(txn, grant, claims)
        except CatalogSyncException as e:
            logger.error(f"Storing install failed platform={self.platform.value} tenant={txn.tenant_hint}: {e}")
            await self._mark_failed_quietly(txn)
            raise

        try:
            await self._transactions.delete(state)
        except CatalogSyncException as e:
            # Claimed states cannot be claimed again; the key expires with its TTL
            logger.warning(f"Could not delete completed OAuth state platform={self.platform.value}: {e}")

        logger.info("install completed platform=%s tenant=%s", self.platform.value, txn.tenant_hint)
        return InstallResult(
            tenant_id=txn.tenant_hint,
            platform=self.platform,
            status=CredentialStatus.ACTIVE,
            expires_at=expires_at,
        )

    async def _mark_failed_quietly(self, txn: OAuthTransaction) -> None:
        """Tombstone the state while another error is already propagating."""
        try:
            await self._transactions.mark_failed(txn)
        except CatalogSyncException as e:
            logger.error(f"Could not mark OAuth state failed platform={self.platform.value}: {e}")


class PlatformAHmacFlow(AuthFlow):
    platform = Platform.PLATFORM_A

    def __init__(
        self,
        settings: Settings,
        transactions: OAuthTransactionStore,
        credentials: CredentialStore,
        tenants: TenantStore,
        client: PlatformAClient,
        verifier: HmacSignatureVerifier,
    ) -> None:
        super().__init__(settings, transactions, credentials, tenants)
        self._client = client
        self._verifier = verifier

    async def validate_tenant_hint(self, tenant_hint: str) -> str:
        return normalize_handle(tenant_hint, self._settings.platform_a_domain_suffix)

    def build_authorize_url(self, txn: OAuthTransaction) -> str:
        query = urlencode({
            "appKey": self._settings.platform_a_app_key or "",
            "responseType": "code",
            "scope": self._settings.platform_a_scopes,
            "redirectUri": self._settings.platform_a_redirect_uri,
            "state": txn.state,
        })
        return f"{self._client.shop_url(txn.tenant_hint)}/admin/oauth-web/#/oauth/authorize?{query}"

    def verify_install_request(self, proof: CallbackProof) -> None:
        self._verifier.verify(proof.params)

    def verify_callback(self, proof: CallbackProof) -> dict:
        return self._verifier.verify(proof.params, extra_required=("code",))

    async def exchange_code(self, txn: OAuthTransaction, code: str, claims: dict) -> TokenGrant:
        handle = normalize_handle(claims.get("handle"), self._settings.platform_a_domain_suffix)
        if handle != txn.tenant_hint:
            raise TokenExchangeFailed(self.platform.value, "callback handle does not match install request")
        body = await self._client.create_token(handle, code)
        return TokenGrant.from_response(body)

    async def on_tokens_stored(self, txn: OAuthTransaction, grant: TokenGrant, claims: dict) -> None:
        await self._tenants.upsert_tenant(txn.tenant_hint)

    async def uninstall(self, proof: CallbackProof) -> str:
        """Soft-revoke a tenant and its credentials. History is kept."""
        params = self._verifier.verify(proof.params)
        tenant_id = normalize_handle(params.get("handle"), self._settings.platform_a_domain_suffix)
        await self._tenants.mark_revoked(tenant_id)
        await self._credentials.revoke_all(tenant_id)
        logger.info("tenant uninstalled tenant=%s", tenant_id)
        return tenant_id


class PlatformBPkceFlow(AuthFlow):
    platform = Platform.PLATFORM_B

    def __init__(
        self,
        settings: Settings,
        transactions: OAuthTransactionStore,
        credentials: CredentialStore,
        tenants: TenantStore,
        client: PlatformBClient,
        verifier: SignedTokenVerifier,
    ) -> None:
        super().__init__(settings, transactions, credentials, tenants)
        self._client = client
        self._verifier = verifier

    async def validate_tenant_hint(self, tenant_hint: str) -> str:
        tenant_id = normalize_handle(tenant_hint, self._settings.platform_a_domain_suffix)
        tenant = await self._tenants.get_tenant(tenant_id)
        if not tenant or tenant.get("status") != TenantStatus.ACTIVE.value:
            raise InvalidTenantInput(f"Unknown or inactive tenant: {tenant_id}")
        return tenant_id

    def _new_code_verifier(self) -> Optional[str]:
        return generate_code_verifier()

    def build_authorize_url(self, txn: OAuthTransaction) -> str:
        query = urlencode({
            "client_id": self._settings.platform_b_client_id or "",
            "redirect_uri": self._settings.platform_b_redirect_uri,
            "scope": self._settings.platform_b_scopes,
            "state": txn.state,
            "response_type": "code",
            "code_challenge": code_challenge_s256(txn.code_verifier),
            "code_challenge_method": "S256",
        })
        return f"{self._settings.platform_b_authorize_url}?{query}"

    def verify_callback(self, proof: CallbackProof) -> dict:
        return self._verifier.verify(proof.params.get("token"), proof.path, proof.query, proof.body)

    async def exchange_code(self, txn: OAuthTransaction, code: str, claims: dict) -> TokenGrant:
        if not txn.code_verifier:
            raise TokenExchangeFailed(self.platform.value, "transaction has no code verifier")
        body = await self._client.exchange_code(code, txn.code_verifier)
        grant = TokenGrant.from_response(body)
        installation_id = claims.get("installationId") or grant.installation_id
        if not installation_id:
            raise TokenExchangeFailed(self.platform.value, "no installation id in callback or token response")
        return grant.model_copy(update={"installation_id": installation_id})

    async def on_tokens_stored(self, txn: OAuthTransaction, grant: TokenGrant, claims: dict) -> None:
        await self._tenants.link_platform_b(txn.tenant_hint, grant.installation_id)
