"""Worker registry endpoints used by the web UI and the console."""
import logging
from typing import AsyncGenerator, List, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.limiter import limiter
from app.models.worker import Worker
from app.schemas.workers import WorkerCreate, WorkerResponse
from app.services.agent_client import AgentClient
from app.services.ipam import AddressPoolExhausted, assign_address
from app.services.keys import KeyGenerationError, generate_keypair
from app.services.mesh import launch_mesh_setup

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOCATION_ATTEMPTS = 2


async def get_agent_client() -> AsyncGenerator[AgentClient, None]:
    """Dependency providing an agent client for a single request."""
    async with AgentClient() as client:
        yield client


@router.get("/api/workers", response_model=List[WorkerResponse])
async def list_workers(db: AsyncSession = Depends(get_db)):
    """
    List all registered workers in registration order.

    Keys used to talk to the agents are not part of the response.
    """
    try:
        result = await db.execute(select(Worker).order_by(Worker.id))
        workers = result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"DB list failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="db list failed"
        )

    logger.info(f"Returning {len(workers)} workers")
    return workers


@router.post("/api/workers", status_code=status.HTTP_201_CREATED, response_class=PlainTextResponse)
@limiter.limit(settings.RATE_LIMIT_WORKER_CREATE)
async def create_worker(
    request: Request,
    worker_in: WorkerCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a worker.

    - Generates a WireGuard key pair (falls back to keys in the request)
    - Allocates the next free mesh address; a ``cidr`` in the request is ignored
    - Starts full-mesh provisioning in the background
    """
    logger.info(f"Register worker name={worker_in.name} ip={worker_in.ip}:{worker_in.port}")
    if worker_in.cidr:
        logger.info(f"Ignoring requested cidr={worker_in.cidr}, addresses are allocated by the master")

    private_key, public_key = worker_in.private_key, worker_in.public_key
    try:
        private_key, public_key = await generate_keypair()
        logger.info(f"Generated key (public)={public_key} private=(masked)")
    except KeyGenerationError as e:
        logger.warning(f"Key generation failed, keeping supplied keys: {e}")

    # A concurrent registration can take the same address; allocate again once
    for attempt in range(ALLOCATION_ATTEMPTS):
        try:
            cidr = await assign_address(db, settings.MESH_NETWORK)
        except AddressPoolExhausted as e:
            logger.error(f"Allocate address failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="address allocation failed"
            )

        worker = Worker(
            name=worker_in.name,
            ip=worker_in.ip,
            port=worker_in.port,
            api_key=worker_in.api_key,
            private_key=private_key,
            public_key=public_key,
            cidr=cidr,
        )
        try:
            db.add(worker)
            await db.commit()
            await db.refresh(worker)
            break
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Address {cidr} was taken concurrently (attempt {attempt + 1})")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"DB insert failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="db insert failed"
            )
    else:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="address allocation conflict, try again"
        )

    logger.info(
        f"Worker created id={worker.id} name={worker.name} ip={worker.address} "
        f"cidr={worker.cidr} pub={worker.public_key}"
    )

    launch_mesh_setup(worker.id)

    return PlainTextResponse(f"created id={worker.id}\n", status_code=status.HTTP_201_CREATED)


@router.get("/api/workers/status", response_class=PlainTextResponse)
async def worker_status(
    id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    client: AgentClient = Depends(get_agent_client),
):
    """
    Relay `wg show` output from one worker's agent.

    The agent's status code and body are passed through unchanged.
    """
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="missing id")
    try:
        worker_id = int(id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid id")

    worker = await db.get(Worker, worker_id)
    if worker is None:
        logger.info(f"Worker not found id={worker_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="worker not found")

    try:
        response = await client.get_status(worker)
    except httpx.HTTPError as e:
        reason = str(e) or e.__class__.__name__
        logger.error(f"Worker status request failed: {reason}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"request failed: {reason}"
        )

    logger.info(f"Worker status response status={response.status_code} len={len(response.content)}")
    return PlainTextResponse(response.text, status_code=response.status_code)
