"""Thin async JSON client for the church web API.

Shared by the preference mirror, the push gateway transport and the
engagement reporter. Callers map failures onto their own error types.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class ChurchApiClient:
    """Issues JSON requests against ``base_url``.

    Pass ``http_transport`` (e.g. ``httpx.MockTransport``) to route requests
    somewhere other than the network.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if base_url is None or timeout is None:
            from src.settings import get_settings
            settings = get_settings()
            base_url = base_url or settings.api_base_url
            timeout = timeout or settings.request_timeout
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_transport = http_transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._http_transport,
            headers={"Content-Type": "application/json"},
        )

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Send one request; raises ``httpx.HTTPError`` on network failure."""
        async with self._client() as client:
            resp = await client.request(method, path, json=json, params=params)
        logger.debug("%s %s -> %s", method, path, resp.status_code)
        return resp

    async def post_json(self, path: str, body: Any) -> httpx.Response:
        return await self.request("POST", path, json=body)

    async def get_json(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        return await self.request("GET", path, params=params)
