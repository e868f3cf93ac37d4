"""
HTTP client for the token registry endpoints, used by device-side code.
"""

import logging
from typing import Any

import httpx

from notifier.errors import StorageError

logger = logging.getLogger(__name__)


class RegistryHttpClient:
    """Registers tokens through ``POST /push/tokens`` on the notifier service."""

    def __init__(
        self,
        base_url: str,
        identity_header: str = "X-User-Id",
        platform: str | None = "web",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.identity_header = identity_header
        self.platform = platform
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, endpoint: str, identity: str, **kwargs) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(
                method,
                f"{self.base_url}{endpoint}",
                headers={self.identity_header: identity},
                **kwargs,
            )
            response.raise_for_status()
            return response.json()

    async def register(self, identity: str, token: str) -> bool:
        """Returns True if the server had not seen this token before."""
        body: dict[str, Any] = {"token": token}
        if self.platform:
            body["platform"] = self.platform
        try:
            data = await self._request("POST", "/push/tokens", identity, json=body)
        except httpx.HTTPError as e:
            logger.warning("Token registration request to %s failed: %s", self.base_url, e)
            raise StorageError(f"Token registration request failed: {e}") from e
        return bool(data.get("created"))

    async def resolve(self, identity: str) -> set[str]:
        try:
            data = await self._request("GET", "/push/tokens", identity)
        except httpx.HTTPError as e:
            raise StorageError(f"Token lookup request failed: {e}") from e
        return set(data.get("pushTokens", []))
