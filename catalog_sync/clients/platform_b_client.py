"""
Platform B HTTP client — PKCE token endpoint and catalog REST calls.
Version: 1.0.0
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.core.config import Settings
from catalog_sync.core.exceptions import ConnectionTimeoutError, RateLimitError, UpstreamAPIError
from catalog_sync.utils.http_utils import decode_json_body, retry_after_seconds

logger = logging.getLogger("platform_b_client")

SERVICE = "platform_b"


class PlatformBClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._client_id = settings.platform_b_client_id
        self._client_secret = settings.platform_b_client_secret
        self._redirect_uri = settings.platform_b_redirect_uri
        self._api_base = settings.platform_b_api_base_url.rstrip("/")
        self._token_url = settings.platform_b_token_url
        self._timeout = settings.platform_call_timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        allow_404: bool = False,
    ) -> Optional[Any]:
        logger.info("platform_b request method=%s url=%s", method, url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method=method, url=url, headers=headers, json=json, data=data)
        except httpx.TimeoutException as e:
            raise ConnectionTimeoutError(f"{SERVICE} call timed out: {method} {url}") from e
        except httpx.HTTPError as e:
            raise UpstreamAPIError(SERVICE, f"transport error: {e}") from e

        logger.info("platform_b response status=%s url=%s", resp.status_code, url)
        if resp.status_code == 404 and allow_404:
            return None
        if resp.status_code == 429:
            raise RateLimitError(SERVICE, retry_after_seconds(resp.headers.get("Retry-After")))
        if resp.status_code >= 400:
            raise UpstreamAPIError(SERVICE, resp.text, status_code=resp.status_code)
        return decode_json_body(resp, SERVICE)

    # -- OAuth -------------------------------------------------------------

    async def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        if not (self._client_id and self._client_secret):
            raise UpstreamAPIError(SERVICE, "PLATFORM_B_CLIENT_ID and PLATFORM_B_CLIENT_SECRET are required")
        form = {**form, "client_id": self._client_id, "client_secret": self._client_secret}
        return await self._request(
            "POST",
            self._token_url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data=form,
        )

    async def exchange_code(self, code: str, code_verifier: str) -> Dict[str, Any]:
        return await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": self._redirect_uri,
        })

    async def refresh_token(self, refresh_token: str) -> Dict[str, Any]:
        return await self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

    # -- Catalog -----------------------------------------------------------

    def _products_url(self, product_id: Optional[str] = None) -> str:
        base = f"{self._api_base}/v1/products"
        return f"{base}/{product_id}" if product_id else base

    @staticmethod
    def _bearer(access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}

    async def list_products(self, access_token: str) -> List[Dict[str, Any]]:
        body = await self._request("GET", self._products_url(), self._bearer(access_token))
        if isinstance(body, dict):
            body = body.get("products") or body.get("data") or []
        return body or []

    async def get_product(self, access_token: str, product_id: str) -> Optional[Dict[str, Any]]:
        return await self._request(
            "GET", self._products_url(product_id), self._bearer(access_token), allow_404=True
        )

    async def put_product(self, access_token: str, product_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create-or-replace keyed by product id."""
        return await self._request(
            "PUT", self._products_url(product_id), self._bearer(access_token), json=payload
        )
