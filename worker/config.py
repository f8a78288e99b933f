"""
Worker agent configuration management.

Loads configuration from .env file and environment variables. Values are
read at access time so tests can patch os.environ.
"""

import os
from pathlib import Path


class WorkerConfig:
    """Worker agent configuration."""

    def __init__(self):
        """Initialize config from environment."""
        self._load_env()

    def _load_env(self):
        """Load .env file if it exists. Existing environment variables win."""
        env_path = Path(__file__).parent.parent / '.env'
        if env_path.exists():
            with open(env_path) as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        os.environ.setdefault(key.strip(), value.strip())

    @property
    def api_key(self) -> str:
        """Key the master must present in X-API-Key. Required."""
        return os.getenv('WORKER_API_KEY', '')

    @property
    def conf_dir(self) -> Path:
        """Directory holding <iface>.conf files."""
        return Path(os.getenv('WG_CONF_DIR', '/etc/wireguard'))

    @property
    def host(self) -> str:
        """Address the agent listens on."""
        return os.getenv('WORKER_HOST', '0.0.0.0')

    @property
    def port(self) -> int:
        """Port the agent listens on."""
        return int(os.getenv('WORKER_PORT', '8080'))

    @property
    def log_level(self) -> str:
        """Logging level."""
        return os.getenv('LOG_LEVEL', 'INFO')

    @property
    def command_timeout(self) -> int:
        """Timeout for wg / systemctl / wg-quick calls in seconds."""
        return int(os.getenv('COMMAND_TIMEOUT', '60'))


# Global config instance
config = WorkerConfig()
