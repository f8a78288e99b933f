"""WireGuard worker agent FastAPI service.

Runs on every mesh node and applies interface/peer configuration pushed by
the master.

Endpoints:
  GET  /health          - liveness check (no auth)
  POST /api/wg/interface - write <iface>.conf and bring the interface up
  POST /api/wg/peer      - add a peer live and persist it to <iface>.conf
  GET  /api/wg/status    - `wg show` output (no auth)

Usage:
    wg-mesh-worker
    python -m worker.main --port 8080
"""

import argparse
import json
import logging
import os
import sys
from typing import Optional, Type, TypeVar

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from worker import __version__, wireguard
from worker.config import config

logger = logging.getLogger(__name__)

app = FastAPI(title="WireGuard Worker Agent", version=__version__)


def _check_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
    expected = config.api_key
    if not x_api_key or not expected or x_api_key.lower() != expected.lower():
        logger.warning("Rejected request with missing or wrong X-API-Key")
        raise HTTPException(status_code=401, detail="unauthorized")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class InterfaceRequest(BaseModel):
    iface: str = ""
    private_key: str = ""
    listen_port: int = 0
    address: str = ""


class PeerRequest(BaseModel):
    iface: str = ""
    public_key: str = ""
    allowed_ips: str = ""
    endpoint: str = ""


M = TypeVar("M", bound=BaseModel)


async def _parse_body(request: Request, model: Type[M]) -> M:
    # Parsed inside the handler so authentication always runs first
    try:
        return model.model_validate(await request.json())
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.warning("Invalid request body on %s: %s", request.url.path, e.__class__.__name__)
        raise HTTPException(status_code=400, detail="invalid json")


def _check_iface(iface: str) -> None:
    if not wireguard.valid_iface(iface):
        raise HTTPException(status_code=400, detail="invalid iface")


def _check_single_line(*values: str) -> None:
    if not wireguard.single_line(*values):
        logger.warning("Rejected request with line breaks in conf values")
        raise HTTPException(status_code=400, detail="invalid fields")


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return PlainTextResponse("invalid json", status_code=400)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/wg/interface", dependencies=[Depends(_check_key)])
async def create_interface(request: Request):
    req = await _parse_body(request, InterfaceRequest)
    if not req.iface or not req.private_key or not req.address:
        raise HTTPException(status_code=400, detail="missing fields")
    _check_iface(req.iface)
    _check_single_line(req.private_key, req.address)

    logger.info(
        "Interface request: iface=%s address=%s listen_port=%d",
        req.iface, req.address, req.listen_port,
    )

    try:
        wireguard.write_interface_conf(
            config.conf_dir, req.iface, req.private_key, req.address, req.listen_port,
        )
    except OSError as e:
        logger.error("Failed to write conf for %s: %s", req.iface, e)
        raise HTTPException(status_code=500, detail="write conf failed")

    await wireguard.bring_up(req.iface)
    return PlainTextResponse("interface created\n", status_code=201)


@app.post("/api/wg/peer", dependencies=[Depends(_check_key)])
async def add_peer(request: Request):
    req = await _parse_body(request, PeerRequest)
    if not req.iface or not req.public_key or not req.allowed_ips:
        raise HTTPException(status_code=400, detail="missing fields")
    _check_iface(req.iface)
    _check_single_line(req.public_key, req.allowed_ips, req.endpoint)

    logger.info(
        "Peer request: iface=%s public_key=%s allowed_ips=%s endpoint=%s",
        req.iface, req.public_key, req.allowed_ips, req.endpoint,
    )

    rc, out = await wireguard.set_peer(req.iface, req.public_key, req.allowed_ips, req.endpoint)
    if rc != 0:
        logger.error("wg set failed rc=%d output=%s", rc, out.strip())
        raise HTTPException(status_code=500, detail="wg set failed")
    logger.info("wg set output: %s", out.strip())

    try:
        appended = wireguard.persist_peer(
            config.conf_dir, req.iface, req.public_key, req.allowed_ips, req.endpoint,
        )
    except OSError as e:
        logger.error("Failed to append peer to conf: %s", e)
        return PlainTextResponse("peer added (but conf append failed)\n", status_code=201)

    if not appended:
        return PlainTextResponse("peer added (already present)\n", status_code=201)

    await wireguard.restart(req.iface)
    return PlainTextResponse("peer added\n", status_code=201)


@app.get("/api/wg/status")
async def status():
    rc, out = await wireguard.show()
    if rc != 0:
        logger.error("wg show failed rc=%d output=%s", rc, out.strip())
        return PlainTextResponse(out, status_code=500)
    return PlainTextResponse(out)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> None:
    """Parse arguments, validate configuration and serve the agent."""
    parser = argparse.ArgumentParser(description="WireGuard Worker Agent")
    parser.add_argument("--host", type=str, default=None, help="Listen address (WORKER_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (WORKER_PORT)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not config.api_key:
        logger.error("WORKER_API_KEY is required")
        sys.exit(1)

    try:
        os.makedirs(config.conf_dir, mode=0o700, exist_ok=True)
    except OSError as e:
        logger.error("Cannot create %s: %s", config.conf_dir, e)
        sys.exit(1)

    host = args.host or config.host
    port = args.port or config.port
    logger.info("Worker agent listening on %s:%d", host, port)

    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
