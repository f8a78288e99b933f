"""Application configuration loaded from environment variables."""
import ipaddress
from pathlib import Path

from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Master settings."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:////etc/wireguard/master-sw/master.db"
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def ensure_async_driver(cls, v: str) -> str:
        """Convert plain sqlite:// and postgresql:// URLs to their async drivers."""
        if v.startswith("sqlite:///"):
            v = v.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        if v.startswith("postgresql://"):
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # WireGuard mesh
    MESH_NETWORK: str = "10.100.0.0/22"
    WG_INTERFACE: str = "wg0"
    WG_PORT: int = 51820

    @field_validator("MESH_NETWORK")
    @classmethod
    def validate_mesh_network(cls, v: str) -> str:
        """Mesh addresses are handed out as IPv4 /32s, so the network must be IPv4."""
        network = ipaddress.ip_network(v, strict=False)
        if network.version != 4:
            raise ValueError("MESH_NETWORK must be an IPv4 network")
        return str(network)

    # Outbound calls to worker agents (seconds)
    WORKER_REQUEST_TIMEOUT: float = 5.0
    KEYGEN_TIMEOUT: int = 10

    # Web UI
    WEB_DIR: str = str(Path(__file__).resolve().parent.parent / "web")

    # CORS - can be "*" for all origins or comma-separated list
    CORS_ORIGINS: str = "*"

    # slowapi limit string for worker registration
    RATE_LIMIT_WORKER_CREATE: str = "60/minute"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Environment
    ENVIRONMENT: str = "production"
    DEBUG: bool = False

    class Config:
        env_file = (".env", "../.env")
        case_sensitive = True
        extra = "allow"


settings = Settings()
