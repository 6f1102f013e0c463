"""
Catalog adapters — per-platform list/get/upsert over NormalizedProduct.

The reconciliation pipeline only ever talks to CatalogAdapter; it never
sees credentials or wire shapes. Each call resolves the tenant's current
access token from the credential store, so a refreshed token is picked
up without any in-process cache.
Version: 1.0.0
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from catalog_sync.core.constants.sync import CredentialStatus, Platform
from catalog_sync.core.exceptions import CredentialNotFound
from catalog_sync.clients.platform_a_client import PlatformAClient
from catalog_sync.clients.platform_b_client import PlatformBClient
from catalog_sync.db.credential_store import CredentialStore
from catalog_sync.schemas.products import NormalizedProduct

logger = logging.getLogger("catalog_adapters")

# A refresh in flight still leaves the previous token valid
USABLE_STATUSES = (CredentialStatus.ACTIVE, CredentialStatus.REFRESHING)


def _first_variant_price(raw: Dict[str, Any]) -> Any:
    variants = raw.get("variants") or []
    if variants and isinstance(variants[0], dict):
        return variants[0].get("price")
    return None


def normalize_product(raw: Dict[str, Any]) -> NormalizedProduct:
    """Map a platform product payload onto the common shape."""
    price = raw.get("price")
    if price is None:
        price = _first_variant_price(raw)
    return NormalizedProduct(
        external_id=str(raw.get("id") or raw.get("external_id")),
        title=raw.get("title"),
        description=raw.get("description", raw.get("body_html")),
        price=float(price) if price is not None else None,
        updated_at=raw.get("updated_at") or raw.get("updatedAt"),
    )


def to_write_payload(product: NormalizedProduct) -> Dict[str, Any]:
    return {
        "title": product.title,
        "description": product.description,
        "price": product.price,
    }


class CatalogAdapter(ABC):
    """Capability interface every platform adapter implements."""

    platform: Platform

    def __init__(self, credentials: CredentialStore) -> None:
        self._credentials = credentials

    async def _access_token(self, tenant_id: str) -> str:
        record = await self._credentials.get_credential(tenant_id, self.platform)
        if record is None or record.status not in USABLE_STATUSES:
            raise CredentialNotFound(tenant_id, self.platform.value)
        return record.access_token

    @abstractmethod
    async def list_products(self, tenant_id: str) -> List[NormalizedProduct]:
        pass

    @abstractmethod
    async def get_product(self, tenant_id: str, external_id: str) -> Optional[NormalizedProduct]:
        pass

    @abstractmethod
    async def upsert_product(self, tenant_id: str, product: NormalizedProduct) -> None:
        pass


class PlatformACatalogAdapter(CatalogAdapter):
    platform = Platform.PLATFORM_A

    def __init__(self, credentials: CredentialStore, client: PlatformAClient) -> None:
        super().__init__(credentials)
        self._client = client

    async def list_products(self, tenant_id: str) -> List[NormalizedProduct]:
        token = await self._access_token(tenant_id)
        raw = await self._client.list_products(tenant_id, token)
        return [normalize_product(item) for item in raw]

    async def get_product(self, tenant_id: str, external_id: str) -> Optional[NormalizedProduct]:
        token = await self._access_token(tenant_id)
        raw = await self._client.get_product(tenant_id, token, external_id)
        return normalize_product(raw) if raw else None

    async def upsert_product(self, tenant_id: str, product: NormalizedProduct) -> None:
        token = await self._access_token(tenant_id)
        await self._client.update_product(tenant_id, token, product.external_id, to_write_payload(product))


class PlatformBCatalogAdapter(CatalogAdapter):
    platform = Platform.PLATFORM_B

    def __init__(self, credentials: CredentialStore, client: PlatformBClient) -> None:
        super().__init__(credentials)
        self._client = client

    async def list_products(self, tenant_id: str) -> List[NormalizedProduct]:
        token = await self._access_token(tenant_id)
        raw = await self._client.list_products(token)
        return [normalize_product(item) for item in raw]

    async def get_product(self, tenant_id: str, external_id: str) -> Optional[NormalizedProduct]:
        token = await self._access_token(tenant_id)
        raw = await self._client.get_product(token, external_id)
        return normalize_product(raw) if raw else None

    async def upsert_product(self, tenant_id: str, product: NormalizedProduct) -> None:
        token = await self._access_token(tenant_id)
        await self._client.put_product(token, product.external_id, to_write_payload(product))
        logger.debug(f"platform_b upsert tenant={tenant_id} product={product.external_id}")
