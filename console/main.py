"""
Worker console - command line entry point.

Usage:
    wg-mesh list
    wg-mesh status 3
    wg-mesh add --name w1 --ip 10.0.0.5 --port 9000 --api-key secret
    wg-mesh --master http://master:8080 list
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

import httpx

from console.client import MasterClient
from console.view import ERROR_PREFIX, RegistrationForm, StatusButton, WorkerConsole

logger = logging.getLogger(__name__)

DEFAULT_MASTER_URL = "http://localhost:8080"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wg-mesh", description="WireGuard mesh worker console")
    parser.add_argument(
        "--master",
        default=os.getenv("WG_MESH_MASTER_URL", DEFAULT_MASTER_URL),
        help="Master base URL (env WG_MESH_MASTER_URL)",
    )
    parser.add_argument("--timeout", type=float, default=10.0, help="Request timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List registered workers")

    status = sub.add_parser("status", help="Show `wg show` output of one worker")
    status.add_argument("id", help="Worker id")

    add = sub.add_parser("add", help="Register a new worker")
    add.add_argument("--name", required=True)
    add.add_argument("--ip", required=True)
    add.add_argument("--port", required=True)
    add.add_argument("--cidr", default="", help="Mesh address; allocated by the master when empty")
    add.add_argument("--api-key", dest="api_key", default="", help="Key of the worker's agent")
    return parser


async def run(args: argparse.Namespace, client: MasterClient) -> int:
    console = WorkerConsole(client, alert=print)

    if args.command == "list":
        table = await console.refresh()
        print(table.render())
        return 0

    if args.command == "status":
        await console.check_status(StatusButton(worker_id=args.id))
        return 0

    form = RegistrationForm(
        name=args.name, ip=args.ip, port=args.port, cidr=args.cidr, api_key=args.api_key,
    )
    message = await console.submit(form)
    print(message)
    if message.startswith(ERROR_PREFIX):
        return 1
    print(console.table.render())
    return 0


async def _main(args: argparse.Namespace) -> int:
    async with MasterClient(args.master, timeout=args.timeout) as client:
        return await run(args, client)


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    try:
        code = asyncio.run(_main(args))
    except httpx.HTTPStatusError as e:
        logger.error(f"Master returned {e.response.status_code}: {e.response.text.strip()}")
        code = 1
    except httpx.HTTPError as e:
        logger.error(f"Request to {args.master} failed: {e}")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
