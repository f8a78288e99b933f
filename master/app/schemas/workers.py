"""Schemas for worker registry endpoints."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class WorkerCreate(BaseModel):
    """Schema for registering a worker.

    ``cidr`` is accepted for compatibility but ignored: the master always
    allocates the next free mesh address. Keys are only kept when the master
    cannot generate its own.
    """

    name: str = Field(..., max_length=255, description="Display name")
    ip: str = Field(..., min_length=1, max_length=255, description="Address of the worker agent")
    port: int = Field(..., ge=0, le=65535, description="Worker agent HTTP port")
    cidr: Optional[str] = Field(None, description="Ignored, the master allocates addresses")
    api_key: str = Field("", description="Key presented to the agent as X-API-Key")
    private_key: str = Field("", description="Fallback WireGuard private key")
    public_key: str = Field("", description="Fallback WireGuard public key")

    @field_validator("name", "ip", "api_key", "private_key", "public_key")
    @classmethod
    def single_line(cls, v: str) -> str:
        # Values end up in agent config files and headers
        if "\n" in v or "\r" in v:
            raise ValueError("must not contain line breaks")
        return v


class WorkerResponse(BaseModel):
    """Schema for a worker in listings. Secrets are not part of it."""

    id: int
    name: str
    ip: str
    port: int
    cidr: str
    public_key: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InterfaceRequest(BaseModel):
    """Payload sent to an agent's /api/wg/interface."""

    iface: str
    private_key: str
    listen_port: int
    address: str


class PeerRequest(BaseModel):
    """Payload sent to an agent's /api/wg/peer."""

    iface: str
    public_key: str
    allowed_ips: str
    endpoint: str = ""
