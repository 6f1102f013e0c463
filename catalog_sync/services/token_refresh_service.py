"""
Token refresh service — periodic sweep renewing credentials near expiry.

For every active credential expiring inside the renewal window:
- success: token fields and expires_at replaced in one update
- failure: existing token left untouched, failure counter incremented;
  once the counter reaches the configured maximum the credential is
  flagged needs_reauth and drops out of future sweeps

Each credential is processed independently; one failure never stops the
sweep.
Version: 1.0.0
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional

from catalog_sync.core.constants.sync import CredentialStatus, Platform
from catalog_sync.core.exceptions import CatalogSyncException, TokenRefreshFailed
from catalog_sync.clients.platform_a_client import PlatformAClient
from catalog_sync.clients.platform_b_client import PlatformBClient
from catalog_sync.db.credential_store import CredentialStore
from catalog_sync.schemas.oauth import CredentialRecord, TokenGrant
from catalog_sync.schemas.sync import RefreshSweepResult

logger = logging.getLogger("token_refresh_service")

RefreshCall = Callable[[CredentialRecord], Awaitable[dict]]


class TokenRefreshService:

    def __init__(
        self,
        credentials: CredentialStore,
        platform_a: PlatformAClient,
        platform_b: PlatformBClient,
        window_hours: int = 24,
        max_failures: int = 3,
    ) -> None:
        self._credentials = credentials
        self._window = timedelta(hours=window_hours)
        self._max_failures = max_failures
        self._refreshers: Dict[Platform, RefreshCall] = {
            Platform.PLATFORM_A: lambda rec: platform_a.refresh_token(rec.tenant_id, rec.refresh_token),
            Platform.PLATFORM_B: lambda rec: platform_b.refresh_token(rec.refresh_token),
        }

    async def sweep(self, now: Optional[datetime] = None) -> RefreshSweepResult:
        now = now or datetime.now(timezone.utc)
        due = await self._credentials.list_expiring(now + self._window)
        result = RefreshSweepResult(checked=len(due))
        logger.info(f"Token refresh sweep: {len(due)} credentials inside {self._window} window")

        for record in due:
            label = f"{record.tenant_id}:{record.platform.value}"
            try:
                await self.refresh_one(record)
                result.refreshed.append(label)
                continue
            except TokenRefreshFailed as e:
                logger.warning(str(e))
                error = str(e)
            except CatalogSyncException as e:
                logger.error(f"Refresh bookkeeping failed for {label}: {e}")
                result.failed.append(label)
                continue

            try:
                escalated = await self._handle_failure(record, error)
            except CatalogSyncException as e:
                logger.error(f"Could not record refresh failure for {label}: {e}")
                escalated = False
            (result.escalated if escalated else result.failed).append(label)

        logger.info(f"Token refresh sweep done: {result.summary()}")
        return result

    async def refresh_one(self, record: CredentialRecord) -> CredentialRecord:
        """Refresh a single credential. Raises TokenRefreshFailed on any upstream failure."""
        platform = record.platform.value
        if not record.refresh_token:
            raise TokenRefreshFailed(platform, record.tenant_id, "no refresh token on record")

        await self._credentials.set_status(record.tenant_id, record.platform, CredentialStatus.REFRESHING)
        try:
            body = await self._refreshers[record.platform](record)
            grant = TokenGrant.from_response(body)
        except (CatalogSyncException, ValueError) as e:
            raise TokenRefreshFailed(platform, record.tenant_id, str(e)) from e

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=grant.expires_in)
        await self._credentials.replace_tokens(
            record.tenant_id,
            record.platform,
            grant.access_token,
            grant.refresh_token,
            expires_at,
        )
        logger.info(f"Refreshed {platform} token for {record.tenant_id}, expires_at={expires_at.isoformat()}")
        return record.model_copy(update={
            "access_token": grant.access_token,
            "refresh_token": grant.refresh_token or record.refresh_token,
            "expires_at": expires_at,
            "consecutive_failures": 0,
            "last_error": None,
        })

    async def _handle_failure(self, record: CredentialRecord, error: str) -> bool:
        """Record the failure; returns True when the credential was escalated."""
        failures = await self._credentials.record_refresh_failure(record.tenant_id, record.platform, error)
        if failures >= self._max_failures:
            await self._credentials.set_status(record.tenant_id, record.platform, CredentialStatus.NEEDS_REAUTH)
            logger.error(
                f"{record.platform.value} credential for {record.tenant_id} needs reauthorization "
                f"after {failures} consecutive refresh failures"
            )
            return True
        await self._credentials.set_status(record.tenant_id, record.platform, CredentialStatus.ACTIVE)
        return False
