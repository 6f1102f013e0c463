"""
Credential store — per-tenant, per-platform OAuth token records.

Credential store for the `platform_credentials` table.

Records are keyed by (tenant_id, platform). The OAuth flows write the
initial record, the refresh sweep renews it; nothing else mutates it.
Catalog adapters read it on demand through get_credential().
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

from catalog_sync.core.constants.sync import CREDENTIALS_TABLE, CredentialStatus, Platform
from catalog_sync.core.exceptions import DatabaseTransientError
from catalog_sync.db.base_store import BaseStore
from catalog_sync.schemas.oauth import CredentialRecord

logger = logging.getLogger("credential_store")


def _to_record(row: Dict[str, Any]) -> CredentialRecord:
    return CredentialRecord(
        tenant_id=row["tenant_id"],
        platform=row["platform"],
        access_token=row["access_token"],
        refresh_token=row.get("refresh_token"),
        expires_at=row["expires_at"],
        status=row.get("status") or CredentialStatus.ACTIVE,
        consecutive_failures=row.get("consecutive_failures") or 0,
        last_error=row.get("last_error"),
    )


class CredentialStore(BaseStore):
    """Durable token records with expiry and lifecycle status."""

    def _key(self, tenant_id: str, platform: Platform) -> Dict[str, Any]:
        return {"tenant_id": tenant_id, "platform": Platform(platform).value}

    async def get_credential(self, tenant_id: str, platform: Platform) -> Optional[CredentialRecord]:
        rows = await self._select(CREDENTIALS_TABLE, filters=self._key(tenant_id, platform), limit=1)
        return _to_record(rows[0]) if rows else None

    async def save_credential(self, record: CredentialRecord) -> None:
        """Write the initial record after a successful token exchange."""
        row = {
            **self._key(record.tenant_id, record.platform),
            "access_token": record.access_token,
            "refresh_token": record.refresh_token,
            "expires_at": record.expires_at.isoformat(),
            "status": CredentialStatus.ACTIVE.value,
            "consecutive_failures": 0,
            "last_error": None,
        }
        await self._upsert(CREDENTIALS_TABLE, [row], on_conflict="tenant_id,platform")
        logger.info(
            "credential saved tenant=%s platform=%s expires_at=%s",
            record.tenant_id, row["platform"], row["expires_at"],
        )

    async def replace_tokens(
        self,
        tenant_id: str,
        platform: Platform,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: datetime,
    ) -> None:
        """Swap token fields and expiry in one update; resets the failure counter."""
        payload = {
            "access_token": access_token,
            "expires_at": expires_at.isoformat(),
            "status": CredentialStatus.ACTIVE.value,
            "consecutive_failures": 0,
            "last_error": None,
        }
        # Some token endpoints do not rotate the refresh token
        if refresh_token:
            payload["refresh_token"] = refresh_token
        await self._update(CREDENTIALS_TABLE, self._key(tenant_id, platform), payload)

    async def record_refresh_failure(self, tenant_id: str, platform: Platform, error: str) -> int:
        """Increment the consecutive failure counter. Returns the new count."""
        current = await self.get_credential(tenant_id, platform)
        failures = (current.consecutive_failures if current else 0) + 1
        await self._update(
            CREDENTIALS_TABLE,
            self._key(tenant_id, platform),
            {"consecutive_failures": failures, "last_error": error[:500]},
        )
        return failures

    async def set_status(self, tenant_id: str, platform: Platform, status: CredentialStatus) -> None:
        await self._update(
            CREDENTIALS_TABLE,
            self._key(tenant_id, platform),
            {"status": CredentialStatus(status).value},
        )
        logger.info(f"credential status tenant={tenant_id} platform={Platform(platform).value} -> {status}")

    async def list_expiring(self, before: datetime) -> List[CredentialRecord]:
        """Active credentials whose expires_at is at or before the cutoff.

        Credentials left in `refreshing` by an interrupted sweep are included.
        """
        try:
            result = self._client.table(CREDENTIALS_TABLE) \
                .select("*") \
                .in_("status", [CredentialStatus.ACTIVE.value, CredentialStatus.REFRESHING.value]) \
                .lte("expires_at", before.isoformat()) \
                .execute()
        except APIError as e:
            logger.info("supabase error table=%s detail=%s", CREDENTIALS_TABLE, str(e))
            raise DatabaseTransientError(f"Supabase select from {CREDENTIALS_TABLE} failed: {e}")
        return [_to_record(row) for row in result.data or []]

    async def revoke_all(self, tenant_id: str) -> None:
        """Soft-revoke every credential of a tenant, keeping the rows."""
        await self._update(
            CREDENTIALS_TABLE,
            {"tenant_id": tenant_id},
            {"status": CredentialStatus.REVOKED.value},
        )
        logger.info(f"credentials revoked tenant={tenant_id}")
