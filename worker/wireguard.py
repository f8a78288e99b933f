"""WireGuard interface and peer management on this node.

Config files live at ``<conf_dir>/<iface>.conf`` and are brought up through
the ``wg-quick@<iface>`` systemd unit, with plain ``wg-quick`` as fallback.
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Optional

from worker.config import config

logger = logging.getLogger(__name__)

# Same rule wg-quick applies to interface names
_IFACE_RE = re.compile(r"^[a-zA-Z0-9_=+.-]{1,15}$")


def valid_iface(iface: str) -> bool:
    return bool(_IFACE_RE.match(iface)) and iface not in (".", "..")


def conf_path(conf_dir: Path, iface: str) -> Path:
    return Path(conf_dir) / f"{iface}.conf"


def single_line(*values: str) -> bool:
    """False when any value would start a new line in a conf file."""
    return not any("\n" in v or "\r" in v for v in values)


def _require_single_line(*values: str) -> None:
    if not single_line(*values):
        raise ValueError("conf values must not contain line breaks")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _run_args(args: list[str], timeout: Optional[int] = None) -> tuple[int, str]:
    """Execute a command via exec (no shell). Returns (returncode, combined output)."""
    timeout = timeout or config.command_timeout
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            stdin=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        return 127, f"{args[0]}: {e}"
    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        return proc.returncode, stdout.decode("utf-8", errors="replace")
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return 1, f"Command timed out after {timeout}s"


# ---------------------------------------------------------------------------
# Config rendering
# ---------------------------------------------------------------------------

def render_interface(private_key: str, address: str, listen_port: int) -> str:
    _require_single_line(private_key, address)
    return (
        "[Interface]\n"
        f"PrivateKey = {private_key}\n"
        f"Address = {address}\n"
        f"ListenPort = {listen_port}\n"
    )


def render_peer(public_key: str, allowed_ips: str, endpoint: str = "") -> str:
    _require_single_line(public_key, allowed_ips, endpoint)
    block = f"\n[Peer]\nPublicKey = {public_key}\nAllowedIPs = {allowed_ips}\n"
    if endpoint:
        block += f"Endpoint = {endpoint}\n"
    return block


def peer_blocks(conf_text: str) -> str:
    """Everything from the first [Peer] section on, or '' when there is none."""
    idx = conf_text.find("\n[Peer]")
    return conf_text[idx:] if idx != -1 else ""


def has_peer(conf_text: str, public_key: str) -> bool:
    return f"PublicKey = {public_key}" in conf_text


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def write_interface_conf(
    conf_dir: Path,
    iface: str,
    private_key: str,
    address: str,
    listen_port: int,
) -> bool:
    """Write the [Interface] section, keeping any [Peer] sections already on disk.

    Returns True when existing peers were preserved. Raises OSError when the
    file cannot be written.
    """
    path = conf_path(conf_dir, iface)
    peers = peer_blocks(_read(path))
    content = render_interface(private_key, address, listen_port) + peers

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(path, 0o600)

    logger.info(
        "Wrote interface conf to %s (len=%d) preserved-peers=%s",
        path, len(content), bool(peers),
    )
    return bool(peers)


def persist_peer(
    conf_dir: Path,
    iface: str,
    public_key: str,
    allowed_ips: str,
    endpoint: str = "",
) -> bool:
    """Append a [Peer] section unless the key is already in the file.

    Returns False when the peer was already present. Raises OSError when the
    file cannot be appended to.
    """
    path = conf_path(conf_dir, iface)
    if has_peer(_read(path), public_key):
        logger.info("Peer %s already present in %s, skipping append", public_key, path)
        return False

    block = render_peer(public_key, allowed_ips, endpoint)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
    with os.fdopen(fd, "a", encoding="utf-8") as f:
        written = f.write(block)
    logger.info("Appended peer to %s bytes=%d", path, written)
    return True


async def bring_up(iface: str) -> bool:
    """Enable and start wg-quick@<iface>, falling back to `wg-quick up`."""
    unit = f"wg-quick@{iface}"

    rc, out = await _run_args(["systemctl", "enable", unit])
    logger.info("systemctl enable %s rc=%d output=%s", unit, rc, out.strip())

    rc, out = await _run_args(["systemctl", "start", unit])
    if rc == 0:
        logger.info("systemctl start %s output=%s", unit, out.strip())
        return True

    logger.warning("systemctl start %s failed rc=%d output=%s", unit, rc, out.strip())
    rc, out = await _run_args(["wg-quick", "up", iface])
    if rc != 0:
        logger.error("Fallback wg-quick up %s also failed rc=%d output=%s", iface, rc, out.strip())
        return False
    logger.info("Fallback wg-quick up %s output=%s", iface, out.strip())
    return True


async def restart(iface: str) -> bool:
    """Restart wg-quick@<iface> so persisted peers are loaded, falling back to down/up."""
    unit = f"wg-quick@{iface}"

    rc, out = await _run_args(["systemctl", "restart", unit])
    logger.info("systemctl restart %s rc=%d output=%s", unit, rc, out.strip())
    if rc == 0:
        return True

    logger.warning("systemctl restart failed, attempting wg-quick down/up as fallback")
    rc, out = await _run_args(["wg-quick", "down", iface])
    logger.info("wg-quick down %s rc=%d output=%s", iface, rc, out.strip())
    rc, out = await _run_args(["wg-quick", "up", iface])
    logger.info("wg-quick up %s rc=%d output=%s", iface, rc, out.strip())
    return rc == 0


async def set_peer(iface: str, public_key: str, allowed_ips: str, endpoint: str = "") -> tuple[int, str]:
    """Add or update a peer on the live interface with `wg set`."""
    args = ["wg", "set", iface, "peer", public_key, "allowed-ips", allowed_ips]
    if endpoint:
        args.extend(["endpoint", endpoint])
    logger.info("Executing %s", " ".join(args))
    return await _run_args(args)


async def show() -> tuple[int, str]:
    """Output of `wg show` for every interface."""
    return await _run_args(["wg", "show"])
