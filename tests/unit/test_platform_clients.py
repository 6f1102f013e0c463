"""
Unit tests for the Platform A and Platform B HTTP clients.

All HTTP is served by httpx.MockTransport; no network access.
Version: 1.0.0
"""
import json
from urllib.parse import parse_qs

import httpx
import pytest

from catalog_sync.clients.platform_a_client import PlatformAClient
from catalog_sync.clients.platform_b_client import PlatformBClient
from catalog_sync.core.exceptions import ConnectionTimeoutError, RateLimitError, UpstreamAPIError
from catalog_sync.core.signatures import canonical_query, hmac_sha256_hex


class Recorder:
    """MockTransport handler returning canned responses and keeping requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client_a(settings, recorder):
    return PlatformAClient(settings, transport=httpx.MockTransport(recorder))


def _client_b(settings, recorder):
    return PlatformBClient(settings, transport=httpx.MockTransport(recorder))


@pytest.mark.unit
class TestPlatformAClient:

    @pytest.mark.asyncio
    async def test_create_token_signs_headers(self, mock_settings):
        recorder = Recorder(httpx.Response(200, json={"code": 200, "data": {
            "access_token": "tok", "refresh_token": "ref", "expires_in": 3600,
        }}))

        body = await _client_a(mock_settings, recorder).create_token("shop-1", "the-code")

        assert body["access_token"] == "tok"
        request = recorder.requests[0]
        assert str(request.url) == "https://shop-1.myshopline.com/admin/oauth/token/create"
        assert json.loads(request.content) == {"code": "the-code"}
        headers = request.headers
        expected = hmac_sha256_hex(
            "test-app-secret",
            canonical_query({"appkey": headers["appkey"], "timestamp": headers["timestamp"]}),
        )
        assert headers["appkey"] == "test-app-key"
        assert headers["sign"] == expected

    @pytest.mark.asyncio
    async def test_list_products_unwraps_envelope(self, mock_settings):
        recorder = Recorder(httpx.Response(200, json={"data": {"products": [{"id": "p1"}]}}))

        products = await _client_a(mock_settings, recorder).list_products("shop-1", "tok")

        assert products == [{"id": "p1"}]
        request = recorder.requests[0]
        assert request.url.path == "/admin/openapi/v20230901/products"
        assert request.headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_get_product_404_is_none(self, mock_settings):
        recorder = Recorder(httpx.Response(404, json={"message": "not found"}))
        assert await _client_a(mock_settings, recorder).get_product("shop-1", "tok", "p1") is None

    @pytest.mark.asyncio
    async def test_rate_limit(self, mock_settings):
        recorder = Recorder(httpx.Response(429, headers={"Retry-After": "12"}))
        with pytest.raises(RateLimitError) as exc_info:
            await _client_a(mock_settings, recorder).list_products("shop-1", "tok")
        assert exc_info.value.retry_after == 12

    @pytest.mark.asyncio
    async def test_timeout_maps_to_connection_timeout(self, mock_settings):
        recorder = Recorder(httpx.ReadTimeout("slow"))
        with pytest.raises(ConnectionTimeoutError):
            await _client_a(mock_settings, recorder).list_products("shop-1", "tok")

    @pytest.mark.asyncio
    async def test_missing_app_credentials(self, mock_settings):
        settings = mock_settings.model_copy(update={"platform_a_app_secret": None})
        with pytest.raises(UpstreamAPIError):
            await _client_a(settings, Recorder()).create_token("shop-1", "code")


@pytest.mark.unit
class TestPlatformBClient:

    @pytest.mark.asyncio
    async def test_exchange_code_sends_pkce_verifier(self, mock_settings):
        recorder = Recorder(httpx.Response(200, json={"access_token": "tok", "expires_in": 3600}))

        body = await _client_b(mock_settings, recorder).exchange_code("the-code", "the-verifier")

        assert body["access_token"] == "tok"
        request = recorder.requests[0]
        assert str(request.url) == "https://auth.platform-b.test/token"
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code_verifier"] == ["the-verifier"]
        assert form["client_id"] == ["test-client-id"]
        assert form["redirect_uri"] == ["https://sync.test/api/v1/platform-b/callback"]

    @pytest.mark.asyncio
    async def test_refresh_token_grant(self, mock_settings):
        recorder = Recorder(httpx.Response(200, json={"access_token": "tok2", "expires_in": 3600}))

        await _client_b(mock_settings, recorder).refresh_token("ref")

        form = parse_qs(recorder.requests[0].content.decode())
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["ref"]

    @pytest.mark.asyncio
    async def test_put_product(self, mock_settings):
        recorder = Recorder(httpx.Response(200, json={"id": "p1"}))

        await _client_b(mock_settings, recorder).put_product("tok", "p1", {"title": "T"})

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert str(request.url) == "https://api.platform-b.test/v1/products/p1"
        assert json.loads(request.content) == {"title": "T"}

    @pytest.mark.asyncio
    async def test_list_products_accepts_wrapped_or_bare(self, mock_settings):
        recorder = Recorder(
            httpx.Response(200, json={"products": [{"id": "p1"}]}),
            httpx.Response(200, json=[{"id": "p2"}]),
        )
        client = _client_b(mock_settings, recorder)

        assert await client.list_products("tok") == [{"id": "p1"}]
        assert await client.list_products("tok") == [{"id": "p2"}]

    @pytest.mark.asyncio
    async def test_server_error(self, mock_settings):
        recorder = Recorder(httpx.Response(503, text="unavailable"))
        with pytest.raises(UpstreamAPIError) as exc_info:
            await _client_b(mock_settings, recorder).get_product("tok", "p1")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error(self, mock_settings):
        recorder = Recorder(httpx.ConnectError("refused"))
        with pytest.raises(UpstreamAPIError):
            await _client_b(mock_settings, recorder).list_products("tok")

    @pytest.mark.asyncio
    async def test_non_json_success_body_is_upstream_error(self, mock_settings):
        recorder = Recorder(httpx.Response(200, text="OK"))
        with pytest.raises(UpstreamAPIError) as exc_info:
            await _client_b(mock_settings, recorder).put_product("tok", "p1", {"title": "T"})
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_empty_success_body_is_empty_dict(self, mock_settings):
        recorder = Recorder(httpx.Response(204))
        assert await _client_b(mock_settings, recorder).put_product("tok", "p1", {"title": "T"}) == {}

    @pytest.mark.asyncio
    async def test_rate_limit_with_http_date_retry_after(self, mock_settings):
        recorder = Recorder(httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}))
        with pytest.raises(RateLimitError) as exc_info:
            await _client_b(mock_settings, recorder).list_products("tok")
        assert exc_info.value.retry_after == 60
