"""WireGuard key generation through wg(8)."""
import asyncio
import logging
from typing import Optional, Tuple

from app.config import settings

logger = logging.getLogger(__name__)


class KeyGenerationError(Exception):
    """wg genkey / wg pubkey could not produce a key pair."""


async def _run_args(args: list[str], stdin: Optional[str] = None, timeout: int = 10) -> tuple[int, str, str]:
    """Execute a command via exec (no shell). Returns (returncode, stdout, stderr)."""
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
    )
    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(stdin.encode() if stdin is not None else None),
            timeout=timeout,
        )
        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return 1, "", f"Command timed out after {timeout}s"


async def generate_keypair(timeout: Optional[int] = None) -> Tuple[str, str]:
    """
    Generate a WireGuard key pair.

    Returns:
        (private_key, public_key)

    Raises:
        KeyGenerationError: wg is missing, failed, or timed out
    """
    timeout = timeout or settings.KEYGEN_TIMEOUT
    try:
        rc, private_key, err = await _run_args(["wg", "genkey"], timeout=timeout)
        if rc != 0:
            raise KeyGenerationError(f"wg genkey failed (exit {rc}): {err.strip()}")
        private_key = private_key.strip()

        rc, public_key, err = await _run_args(["wg", "pubkey"], stdin=private_key + "\n", timeout=timeout)
        if rc != 0:
            raise KeyGenerationError(f"wg pubkey failed (exit {rc}): {err.strip()}")
    except OSError as e:
        raise KeyGenerationError(f"wg not available: {e}") from e

    return private_key, public_key.strip()
