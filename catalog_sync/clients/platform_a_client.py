"""
Platform A HTTP client — signed OAuth token calls and catalog REST calls.

Transport only: no credential lookup, no retries. Every call opens a
short-lived httpx.AsyncClient with the configured timeout.
Version: 1.0.0
"""
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.core.config import Settings
from catalog_sync.core.exceptions import ConnectionTimeoutError, RateLimitError, UpstreamAPIError
from catalog_sync.core.signatures import canonical_query, hmac_sha256_hex
from catalog_sync.utils.http_utils import decode_json_body, retry_after_seconds

logger = logging.getLogger("platform_a_client")

SERVICE = "platform_a"


class PlatformAClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._app_key = settings.platform_a_app_key
        self._app_secret = settings.platform_a_app_secret
        self._api_version = settings.platform_a_api_version
        self._domain_suffix = settings.platform_a_domain_suffix
        self._timeout = settings.platform_call_timeout
        self._transport = transport

    def shop_url(self, handle: str) -> str:
        return f"https://{handle}.{self._domain_suffix}"

    def _signed_headers(self) -> Dict[str, str]:
        if not (self._app_key and self._app_secret):
            raise UpstreamAPIError(SERVICE, "PLATFORM_A_APP_KEY and PLATFORM_A_APP_SECRET are required")
        params = {"appkey": self._app_key, "timestamp": str(int(time.time()))}
        return {
            "Content-Type": "application/json",
            "appkey": params["appkey"],
            "timestamp": params["timestamp"],
            "sign": hmac_sha256_hex(self._app_secret, canonical_query(params)),
        }

    async def _request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        allow_404: bool = False,
    ) -> Optional[Dict[str, Any]]:
        logger.info("platform_a request method=%s url=%s", method, url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method=method, url=url, headers=headers, json=json, params=params)
        except httpx.TimeoutException as e:
            raise ConnectionTimeoutError(f"{SERVICE} call timed out: {method} {url}") from e
        except httpx.HTTPError as e:
            raise UpstreamAPIError(SERVICE, f"transport error: {e}") from e

        logger.info("platform_a response status=%s url=%s", resp.status_code, url)
        if resp.status_code == 404 and allow_404:
            return None
        if resp.status_code == 429:
            raise RateLimitError(SERVICE, retry_after_seconds(resp.headers.get("Retry-After")))
        if resp.status_code >= 400:
            raise UpstreamAPIError(SERVICE, resp.text, status_code=resp.status_code)
        return decode_json_body(resp, SERVICE)

    # -- OAuth -------------------------------------------------------------

    async def create_token(self, handle: str, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for tokens."""
        url = f"{self.shop_url(handle)}/admin/oauth/token/create"
        body = await self._request("POST", url, self._signed_headers(), json={"code": code})
        return _unwrap(body)

    async def refresh_token(self, handle: str, refresh_token: str) -> Dict[str, Any]:
        url = f"{self.shop_url(handle)}/admin/oauth/token/refresh"
        body = await self._request(
            "POST", url, self._signed_headers(), json={"refresh_token": refresh_token}
        )
        return _unwrap(body)

    # -- Catalog -----------------------------------------------------------

    def _products_url(self, handle: str, product_id: Optional[str] = None) -> str:
        base = f"{self.shop_url(handle)}/admin/openapi/{self._api_version}/products"
        return f"{base}/{product_id}" if product_id else base

    @staticmethod
    def _bearer(access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}

    async def list_products(self, handle: str, access_token: str) -> List[Dict[str, Any]]:
        body = await self._request("GET", self._products_url(handle), self._bearer(access_token))
        data = _unwrap(body)
        if isinstance(data, dict):
            data = data.get("products") or []
        return data or []

    async def get_product(self, handle: str, access_token: str, product_id: str) -> Optional[Dict[str, Any]]:
        body = await self._request(
            "GET", self._products_url(handle, product_id), self._bearer(access_token), allow_404=True
        )
        if body is None:
            return None
        return _unwrap(body) or None

    async def update_product(
        self, handle: str, access_token: str, product_id: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        body = await self._request(
            "PUT", self._products_url(handle, product_id), self._bearer(access_token), json=payload
        )
        return _unwrap(body)


def _unwrap(body: Optional[Dict[str, Any]]) -> Any:
    """Platform A wraps payloads in a `data` envelope; token calls may not."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body or {}
