"""Full-mesh provisioning for newly registered workers.

A new worker gets its interface created, then every existing worker and the
new one are told about each other. Interfaces on existing workers are never
re-created because that would drop their peers.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Set

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import AsyncSessionLocal
from app.models.worker import Worker
from app.schemas.workers import InterfaceRequest, PeerRequest
from app.services.agent_client import AgentClient

logger = logging.getLogger(__name__)


@dataclass
class MeshReport:
    """Outcome of one provisioning run."""
    worker_id: int
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def record(self, label: str, response: Optional[httpx.Response], error: Optional[Exception] = None) -> None:
        if error is not None:
            self.failed += 1
            self.errors.append(f"{label}: {error}")
        elif response is not None and response.is_success:
            self.succeeded += 1
        else:
            self.failed += 1
            status_code = response.status_code if response is not None else "?"
            self.errors.append(f"{label}: status={status_code}")


async def _call(
    report: MeshReport,
    label: str,
    call: Callable[[], Awaitable[httpx.Response]],
) -> None:
    """Run one agent call, log the outcome and keep going on failure."""
    try:
        response = await call()
    except httpx.HTTPError as e:
        logger.error(f"{label} failed: {e}")
        report.record(label, None, e)
        return
    logger.info(f"{label} response status={response.status_code} body={response.text.strip()}")
    report.record(label, response)


def peer_request_for(worker: Worker) -> PeerRequest:
    """Peer entry that lets other workers reach ``worker`` over the mesh."""
    return PeerRequest(
        iface=settings.WG_INTERFACE,
        public_key=worker.public_key,
        allowed_ips=worker.cidr,
        endpoint=f"{worker.ip}:{settings.WG_PORT}",
    )


async def setup_worker_mesh(
    db: AsyncSession,
    new: Worker,
    client: AgentClient,
) -> MeshReport:
    """
    Create the interface on ``new`` and connect it to every other worker.

    Args:
        db: Database session used to list existing workers
        new: The freshly registered worker (must carry its private key)
        client: Agent client shared by all calls

    Returns:
        MeshReport with per-call outcomes
    """
    logger.info(f"Setup mesh for new worker {new.name} ({new.ip})")
    report = MeshReport(worker_id=new.id)

    iface_request = InterfaceRequest(
        iface=settings.WG_INTERFACE,
        private_key=new.private_key,
        listen_port=settings.WG_PORT,
        address=new.cidr,
    )
    await _call(
        report,
        f"create interface on new {new.name}",
        lambda: client.create_interface(new, iface_request),
    )

    result = await db.execute(select(Worker).order_by(Worker.id))
    existing_workers = result.scalars().all()

    for existing in existing_workers:
        if existing.ip == new.ip and existing.port == new.port:
            continue

        logger.info(f"Skipping interface re-create on existing worker {existing.name}")

        await _call(
            report,
            f"add new on existing {existing.name}",
            lambda w=existing: client.add_peer(w, peer_request_for(new)),
        )
        await _call(
            report,
            f"add existing {existing.name} on new",
            lambda w=existing: client.add_peer(new, peer_request_for(w)),
        )

    logger.info(
        f"Mesh setup for worker {new.id} finished: "
        f"{report.succeeded} succeeded, {report.failed} failed"
    )
    return report


async def run_mesh_setup(worker_id: int) -> Optional[MeshReport]:
    """Background entry point: load the worker in a fresh session and provision it."""
    try:
        async with AsyncSessionLocal() as db:
            new = await db.get(Worker, worker_id)
            if new is None:
                logger.warning(f"Worker {worker_id} vanished before mesh setup")
                return None
            async with AgentClient() as client:
                return await setup_worker_mesh(db, new, client)
    except Exception as e:
        logger.error(f"Mesh setup for worker {worker_id} failed: {e}", exc_info=True)
        return None


# Strong references to running provisioning tasks
_background_tasks: Set[asyncio.Task] = set()


def launch_mesh_setup(worker_id: int) -> asyncio.Task:
    """Start mesh provisioning without blocking the caller."""
    task = asyncio.create_task(run_mesh_setup(worker_id))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
