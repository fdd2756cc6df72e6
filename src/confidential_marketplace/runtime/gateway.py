"""
Decryption gateway health client.

The gateway decrypts FHE query results off-chain. The marketplace only
needs to know whether it is reachable before starting an FHE workflow.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..core.errors import GatewayUnavailable

logger = logging.getLogger(__name__)


class DecryptionGateway:
    """
    Liveness probe for the decryption gateway.

    Usage:
        gateway = DecryptionGateway("https://gateway.sepolia.zama.ai")
        await gateway.probe()  # raises GatewayUnavailable
        ok = await gateway.is_healthy()
    """

    def __init__(
        self,
        gateway_url: Optional[str],
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.gateway_url = gateway_url.rstrip("/") if gateway_url else None
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client if we own it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def probe(self) -> None:
        """
        Check the gateway health endpoint.

        Sends ``HEAD /health`` and retries with GET when the gateway does not
        allow HEAD.

        Raises:
            GatewayUnavailable: If no gateway is configured, it cannot be
                reached, or it answers with a non-2xx status
        """
        if not self.gateway_url:
            raise GatewayUnavailable(None, "no gateway configured")

        client = await self._get_client()
        url = f"{self.gateway_url}/health"
        try:
            response = await client.head(url, timeout=self.timeout)
            if response.status_code == 405:
                response = await client.get(url, timeout=self.timeout)
        except httpx.RequestError as e:
            logger.warning(f"Gateway probe failed: {e}")
            raise GatewayUnavailable(self.gateway_url, str(e)) from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"Gateway probe returned {response.status_code}")
            raise GatewayUnavailable(self.gateway_url, f"HTTP {response.status_code}")

    async def is_healthy(self) -> bool:
        try:
            await self.probe()
        except GatewayUnavailable:
            return False
        return True
