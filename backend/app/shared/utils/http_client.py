"""
Shared outbound HTTP client.

Z-API, Supabase Auth and Google Places all go through one pooled
httpx.AsyncClient. It is created on first use and closed from the app
lifespan. Per-call timeouts come from app.shared.core.constants.
"""
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

POOL_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
POOL_LIMITS = httpx.Limits(max_connections=100, max_keepalive_connections=20, keepalive_expiry=30.0)


class HTTPClientManager:
    """Lazily builds the pooled client; services accept their own client in tests."""

    def __init__(self, timeout: httpx.Timeout = POOL_TIMEOUT, limits: httpx.Limits = POOL_LIMITS):
        self.timeout = timeout
        self.limits = limits
        self._client: Optional[httpx.AsyncClient] = None

    def get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, limits=self.limits, follow_redirects=True)
            logger.info("HTTP client created with connection pooling")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed, connections released")


http_client_manager = HTTPClientManager()


async def shutdown_http_client():
    """Called from the FastAPI lifespan on shutdown."""
    await http_client_manager.close()
