"""
Unit tests for RecommendationClient — HTTP gateway to the recommendation service.

Tests cover:
- Configuration checks before any request
- Request shape (URL, API key header, JSON body)
- Success decoding (empty body, object body, non-object body)
- Error decoding (message / error keys, HTTP status, transport failures)
- test_connection round trip

Version: 1.0.0
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from catalog_sync.clients.recommendation_client import RecommendationClient
from catalog_sync.core.exceptions import ConfigurationError, RemoteError

pytestmark = pytest.mark.unit


@pytest.fixture
def reco_settings():
    s = MagicMock()
    s.recommendation_api_key = "test-key"
    s.recommendation_api_url = "https://api.reco.test/api/v1/"
    s.recommendation_api_timeout = 5
    return s


@pytest.fixture
def client(reco_settings):
    return RecommendationClient(reco_settings)


def _patched_http(response=None, side_effect=None):
    """Patch httpx.AsyncClient so request() returns response or raises side_effect."""
    patcher = patch("catalog_sync.clients.recommendation_client.httpx.AsyncClient")
    MockAsyncClient = patcher.start()
    mock_ctx = MagicMock()
    mock_ctx.request = AsyncMock(return_value=response, side_effect=side_effect)
    MockAsyncClient.return_value.__aenter__ = AsyncMock(return_value=mock_ctx)
    MockAsyncClient.return_value.__aexit__ = AsyncMock(return_value=False)
    return patcher, MockAsyncClient, mock_ctx


# --------------------------------------------------------------------------
# Configuration
# --------------------------------------------------------------------------

class TestConfiguration:

    def test_is_configured(self, client):
        assert client.is_configured is True

    def test_not_configured_without_key(self, reco_settings):
        reco_settings.recommendation_api_key = None
        assert RecommendationClient(reco_settings).is_configured is False

    @pytest.mark.asyncio
    async def test_missing_key_raises_configuration_error(self, reco_settings):
        reco_settings.recommendation_api_key = ""
        client = RecommendationClient(reco_settings)
        with pytest.raises(ConfigurationError):
            await client.bulk_sync([])

    @pytest.mark.asyncio
    async def test_missing_url_raises_configuration_error(self, reco_settings):
        reco_settings.recommendation_api_url = None
        client = RecommendationClient(reco_settings)
        with pytest.raises(ConfigurationError):
            await client.sync_record({})


# --------------------------------------------------------------------------
# Requests
# --------------------------------------------------------------------------

class TestRequests:

    @pytest.mark.asyncio
    async def test_bulk_sync_posts_products(self, client):
        patcher, MockAsyncClient, mock_ctx = _patched_http(
            httpx.Response(200, json={"success": True, "synced": 2})
        )
        try:
            result = await client.bulk_sync([{"externalId": "site_1_1"}, {"externalId": "site_1_2"}])
        finally:
            patcher.stop()

        assert result == {"success": True, "synced": 2}
        MockAsyncClient.assert_called_once_with(timeout=5)
        kwargs = mock_ctx.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "https://api.reco.test/api/v1/sync/products"
        assert kwargs["headers"]["X-API-Key"] == "test-key"
        assert kwargs["json"] == {"products": [{"externalId": "site_1_1"}, {"externalId": "site_1_2"}]}

    @pytest.mark.asyncio
    async def test_sync_record_posts_single_record(self, client):
        patcher, _, mock_ctx = _patched_http(httpx.Response(201, json={"success": True}))
        try:
            await client.sync_record({"externalId": "site_1_9"})
        finally:
            patcher.stop()

        kwargs = mock_ctx.request.call_args.kwargs
        assert kwargs["url"].endswith("/sync/product")
        assert kwargs["json"] == {"externalId": "site_1_9"}

    @pytest.mark.asyncio
    async def test_delete_posts_external_ids(self, client):
        patcher, _, mock_ctx = _patched_http(httpx.Response(200, json={}))
        try:
            await client.delete_record("site_1_3")
        finally:
            patcher.stop()

        kwargs = mock_ctx.request.call_args.kwargs
        assert kwargs["url"].endswith("/sync/products/delete")
        assert kwargs["json"] == {"externalIds": ["site_1_3"]}

    @pytest.mark.asyncio
    async def test_empty_body_decodes_to_empty_dict(self, client):
        patcher, _, _ = _patched_http(httpx.Response(204))
        try:
            assert await client.bulk_sync([]) == {}
        finally:
            patcher.stop()

    @pytest.mark.asyncio
    async def test_list_body_is_wrapped(self, client):
        patcher, _, _ = _patched_http(httpx.Response(200, json=["a", "b"]))
        try:
            assert await client.bulk_sync([]) == {"data": ["a", "b"]}
        finally:
            patcher.stop()


# --------------------------------------------------------------------------
# Errors
# --------------------------------------------------------------------------

class TestErrors:

    @pytest.mark.asyncio
    async def test_error_message_from_body(self, client):
        patcher, _, _ = _patched_http(httpx.Response(422, json={"message": "Invalid product payload"}))
        try:
            with pytest.raises(RemoteError) as exc_info:
                await client.bulk_sync([])
        finally:
            patcher.stop()

        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "Invalid product payload"
        assert str(exc_info.value) == "Invalid product payload (HTTP 422)"

    @pytest.mark.asyncio
    async def test_error_key_used_when_no_message(self, client):
        patcher, _, _ = _patched_http(httpx.Response(401, json={"error": "Unauthorized"}))
        try:
            with pytest.raises(RemoteError, match="Unauthorized"):
                await client.bulk_sync([])
        finally:
            patcher.stop()

    @pytest.mark.asyncio
    async def test_unreadable_error_body_gets_default_message(self, client):
        patcher, _, _ = _patched_http(httpx.Response(500, text="<html>oops</html>"))
        try:
            with pytest.raises(RemoteError) as exc_info:
                await client.bulk_sync([])
        finally:
            patcher.stop()

        assert exc_info.value.message == "API request failed"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout_becomes_remote_error(self, client):
        patcher, _, _ = _patched_http(side_effect=httpx.ReadTimeout("timed out"))
        try:
            with pytest.raises(RemoteError) as exc_info:
                await client.bulk_sync([])
        finally:
            patcher.stop()

        assert exc_info.value.status_code is None
        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error_becomes_remote_error(self, client):
        patcher, _, _ = _patched_http(side_effect=httpx.ConnectError("refused"))
        try:
            with pytest.raises(RemoteError, match="failed"):
                await client.bulk_sync([])
        finally:
            patcher.stop()


# --------------------------------------------------------------------------
# test_connection
# --------------------------------------------------------------------------

class TestConnectionCheck:

    @pytest.mark.asyncio
    async def test_syncs_then_deletes_throwaway_record(self, client):
        patcher, _, mock_ctx = _patched_http(httpx.Response(200, json={"success": True}))
        try:
            assert await client.test_connection() is True
        finally:
            patcher.stop()

        urls = [c.kwargs["url"] for c in mock_ctx.request.call_args_list]
        assert urls[0].endswith("/sync/product")
        assert urls[1].endswith("/sync/products/delete")
        assert mock_ctx.request.call_args_list[1].kwargs["json"] == {"externalIds": ["test-connection"]}

    @pytest.mark.asyncio
    async def test_throwaway_sync_failure_raises(self, client):
        patcher, _, _ = _patched_http(httpx.Response(403, json={"message": "Invalid API key"}))
        try:
            with pytest.raises(RemoteError, match="Invalid API key"):
                await client.test_connection()
        finally:
            patcher.stop()
