"""Mesh address allocation.

Every worker owns one /32 inside the mesh network. The network and broadcast
addresses are never handed out.
"""
import ipaddress
import logging
from typing import Iterable, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.worker import Worker

logger = logging.getLogger(__name__)


class AddressError(Exception):
    """Base class for mesh address errors."""


class AddressPoolExhausted(AddressError):
    """No free host address left in the mesh network."""


def used_addresses(cidrs: Iterable[str]) -> Set[ipaddress.IPv4Address]:
    """Host addresses taken by stored ``cidr`` values. Empty values are ignored."""
    used = set()
    for cidr in cidrs:
        if not cidr:
            continue
        host = cidr.split("/")[0].strip()
        try:
            used.add(ipaddress.ip_address(host))
        except ValueError:
            logger.warning(f"Ignoring unparsable stored cidr: {cidr!r}")
    return used


def allocate_address(network_cidr: str, cidrs: Iterable[str]) -> str:
    """
    Return the first free host of the mesh network as 'a.b.c.d/32'.

    Raises:
        AddressPoolExhausted: every host address is in use
    """
    net = ipaddress.ip_network(network_cidr, strict=False)
    used = used_addresses(cidrs)

    for host in net.hosts():
        if host not in used:
            return f"{host}/32"

    raise AddressPoolExhausted(f"no available addresses in {net}")


async def assign_address(db: AsyncSession, network_cidr: str) -> str:
    """Allocate the next free mesh address against the stored workers."""
    result = await db.execute(select(Worker.cidr))
    cidrs = list(result.scalars().all())
    return allocate_address(network_cidr, cidrs)
