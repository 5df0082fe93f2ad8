"""HTTP adapter for the hosted backend (storage, catalog and auth REST APIs)."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..errors import APIError
from ..models import BackendSettings

logger = logging.getLogger(__name__)


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. JSON calls retry on 5xx and network
    errors; object uploads are sent once.
    """

    def __init__(
        self,
        settings: BackendSettings,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._max_retries = max_retries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._settings.url,
            headers=self._settings.headers,
            timeout=self._settings.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")
        return self._client

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, endpoint: str) -> None:
        if response.status_code < 400:
            return
        try:
            error_detail = response.json()
        except Exception:
            error_detail = response.text
        raise APIError(response.status_code, method, endpoint, error_detail)

    async def _request(self, method: str, endpoint: str, retry: bool = True, **kwargs) -> httpx.Response:
        client = self._require_client()
        last_exception: Optional[Exception] = None
        attempts = self._max_retries if retry else 1

        for attempt in range(attempts):
            try:
                response = await client.request(method, endpoint, **kwargs)

                if response.status_code >= 500 and attempt < attempts - 1:
                    logger.debug(f"{method} {endpoint} -> {response.status_code}, retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue

                self._raise_for_status(response, method, endpoint)
                return response
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                last_exception = exc
                if attempt < attempts - 1:
                    logger.debug(f"{method} {endpoint} failed ({exc}), retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise

        if last_exception:
            raise last_exception
        raise RuntimeError(f"Failed to {method} {endpoint} after {attempts} attempts")

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        return await self._request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        json: Any,
        headers: Optional[Dict] = None,
        retry: bool = True,
    ) -> Any:
        """POST JSON; pass retry=False for non-idempotent writes."""
        return await self._request("POST", endpoint, retry=retry, json=json, headers=headers)

    async def delete(self, endpoint: str, json: Any = None) -> Any:
        return await self._request("DELETE", endpoint, json=json)

    async def upload(
        self,
        endpoint: str,
        content: AsyncIterator[bytes],
        headers: Dict[str, str],
    ) -> httpx.Response:
        """Stream a request body once; no retry since the stream is consumed."""
        client = self._require_client()
        response = await client.post(endpoint, content=content, headers=headers)
        self._raise_for_status(response, "POST", endpoint)
        return response
