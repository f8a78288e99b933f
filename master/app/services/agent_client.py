"""HTTP client for talking to worker agents.

Every agent call carries the worker's key in the ``X-API-Key`` header.
"""
import logging
from typing import Optional

import httpx

from app.config import settings
from app.models.worker import Worker
from app.schemas.workers import InterfaceRequest, PeerRequest

logger = logging.getLogger(__name__)


class AgentClient:
    """Thin wrapper around one httpx.AsyncClient shared by a batch of agent calls."""

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize agent client.

        Args:
            timeout: Per-request timeout in seconds (defaults to WORKER_REQUEST_TIMEOUT)
            transport: Optional httpx transport, used by tests
        """
        self.timeout = timeout or settings.WORKER_REQUEST_TIMEOUT
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def __aenter__(self) -> "AgentClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def base_url(worker: Worker) -> str:
        return f"http://{worker.ip}:{worker.port}"

    def _headers(self, worker: Worker) -> dict:
        return {"X-API-Key": worker.api_key or ""}

    async def get_status(self, worker: Worker) -> httpx.Response:
        """GET /api/wg/status on the worker. Transport errors propagate."""
        url = f"{self.base_url(worker)}/api/wg/status"
        logger.info(f"Proxying status request to {url}")
        return await self._client.get(url, headers=self._headers(worker))

    async def create_interface(self, worker: Worker, request: InterfaceRequest) -> httpx.Response:
        """POST /api/wg/interface on the worker."""
        url = f"{self.base_url(worker)}/api/wg/interface"
        logger.info(
            f"Create interface {request.iface} on {worker.name} -> {url} "
            f"(address={request.address}, listen_port={request.listen_port})"
        )
        return await self._client.post(url, json=request.model_dump(), headers=self._headers(worker))

    async def add_peer(self, worker: Worker, request: PeerRequest) -> httpx.Response:
        """POST /api/wg/peer on the worker."""
        url = f"{self.base_url(worker)}/api/wg/peer"
        logger.info(f"POST {url} payload={request.model_dump()}")
        return await self._client.post(url, json=request.model_dump(), headers=self._headers(worker))
