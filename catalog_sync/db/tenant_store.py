"""
Tenant store — merchants and their cross-platform link.

A tenant is keyed by its Platform-A handle. It is created on the
Platform-A install callback and linked once the Platform-B install
completes. Tenants are never hard-deleted; uninstall flips status.
Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from catalog_sync.core.constants.sync import TENANTS_TABLE, TenantStatus
from catalog_sync.db.base_store import BaseStore

logger = logging.getLogger("tenant_store")


class TenantStore(BaseStore):

    async def get_tenant(self, tenant_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._select(TENANTS_TABLE, filters={"tenant_id": tenant_id}, limit=1)
        return rows[0] if rows else None

    async def upsert_tenant(self, tenant_id: str) -> None:
        """Create the tenant, or reactivate it after a reinstall."""
        await self._upsert(
            TENANTS_TABLE,
            [{
                "tenant_id": tenant_id,
                "status": TenantStatus.ACTIVE.value,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }],
            on_conflict="tenant_id",
        )
        logger.info("tenant upserted tenant=%s", tenant_id)

    async def link_platform_b(self, tenant_id: str, installation_id: str) -> None:
        await self._update(
            TENANTS_TABLE,
            {"tenant_id": tenant_id},
            {
                "platform_b_installation_id": installation_id,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        logger.info("tenant linked tenant=%s installation=%s", tenant_id, installation_id)

    async def list_active_tenants(self) -> List[Dict[str, Any]]:
        """All active tenants, linked or not. Callers skip unlinked ones."""
        return await self._select(
            TENANTS_TABLE,
            filters={"status": TenantStatus.ACTIVE.value},
            order_by="tenant_id",
        )

    async def mark_revoked(self, tenant_id: str) -> None:
        await self._update(
            TENANTS_TABLE,
            {"tenant_id": tenant_id},
            {
                "status": TenantStatus.REVOKED.value,
                "revoked_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        logger.info("tenant revoked tenant=%s", tenant_id)
