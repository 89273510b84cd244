import logging
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.core.config import Settings
from catalog_sync.core.constants.sync import CONNECTION_TEST_EXTERNAL_ID
from catalog_sync.core.exceptions import ConfigurationError, RemoteError

logger = logging.getLogger("recommendation_client")

DEFAULT_ERROR_MESSAGE = "API request failed"


class RecommendationClient:
    """
    HTTP gateway to the recommendation service.

    Every call either returns the decoded acknowledgement or raises
    RemoteError. No retries happen here.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.recommendation_api_key
        self._api_url = settings.recommendation_api_url
        self._timeout = settings.recommendation_api_timeout
        logger.info(f"RecommendationClient initialized: url={self._api_url}, timeout={self._timeout}s")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key) and bool(self._api_url)

    def _base_url(self) -> str:
        if not self._api_key:
            raise ConfigurationError("RECOMMENDATION_API_KEY is not configured")
        if not self._api_url:
            raise ConfigurationError("RECOMMENDATION_API_URL is not configured")
        return self._api_url.rstrip("/")

    @staticmethod
    def _decode_error(resp: httpx.Response) -> str:
        """Best-effort error message from a non-success response body."""
        try:
            body = resp.json()
        except ValueError:
            return DEFAULT_ERROR_MESSAGE
        if isinstance(body, dict):
            if body.get("message"):
                return str(body["message"])
            if body.get("error"):
                return str(body["error"])
        return DEFAULT_ERROR_MESSAGE

    async def call_api(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self._base_url()}{path}"
        logger.info("recommendation request method=%s path=%s", method, path)

        headers = {
            "X-API-Key": self._api_key or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(method=method, url=url, headers=headers, json=json)
        except httpx.TimeoutException as e:
            raise RemoteError(f"Request to {path} timed out: {e}")
        except httpx.RequestError as e:
            raise RemoteError(f"Request to {path} failed: {e}")

        logger.info("recommendation response status=%s path=%s", resp.status_code, path)
        if not 200 <= resp.status_code < 300:
            raise RemoteError(self._decode_error(resp), status_code=resp.status_code)

        if not resp.text:
            return {}
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    async def bulk_sync(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Push a batch of wire records."""
        return await self.call_api("POST", "/sync/products", json={"products": records})

    async def sync_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Push a single wire record."""
        return await self.call_api("POST", "/sync/product", json=record)

    async def delete(self, external_ids: List[str]) -> Dict[str, Any]:
        """Remove records from the remote catalog."""
        return await self.call_api("POST", "/sync/products/delete", json={"externalIds": external_ids})

    async def delete_record(self, external_id: str) -> Dict[str, Any]:
        return await self.delete([external_id])

    async def test_connection(self) -> bool:
        """Round-trip a throw-away record, then remove it."""
        test_record = {
            "externalId": CONNECTION_TEST_EXTERNAL_ID,
            "name": "Test Connection Product",
            "price": 0,
            "sku": CONNECTION_TEST_EXTERNAL_ID,
            "status": "active",
        }
        await self.sync_record(test_record)
        await self.delete_record(CONNECTION_TEST_EXTERNAL_ID)
        return True
