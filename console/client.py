"""
HTTP client for the mesh master API.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class MasterClient:
    """Async client for the master's /api/workers endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize master client.

        Args:
            base_url: Master base URL (e.g., "http://localhost:8080")
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url.rstrip('/')
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "MasterClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_workers(self) -> List[Dict[str, Any]]:
        """Fetch every registered worker.

        Raises:
            httpx.HTTPStatusError: on a non-2xx response
            httpx.TransportError: when the master is unreachable
        """
        response = await self._client.get("/api/workers")
        response.raise_for_status()
        return response.json()

    async def worker_status(self, worker_id: Any) -> str:
        """Status text for one worker, whatever the response status."""
        response = await self._client.get("/api/workers/status", params={"id": str(worker_id)})
        logger.debug(f"Status for worker {worker_id}: {response.status_code}")
        return response.text

    async def create_worker(self, payload: Dict[str, Any]) -> httpx.Response:
        """POST a new worker. The caller inspects the status code."""
        response = await self._client.post("/api/workers", json=payload)
        logger.debug(f"Create worker {payload.get('name')!r}: {response.status_code}")
        return response
