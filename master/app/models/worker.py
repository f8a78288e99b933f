"""Worker model for registered mesh nodes."""
from datetime import datetime

from sqlalchemy import String, Integer, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Worker(Base):
    """A node running the worker agent, reachable at ip:port.

    ``cidr`` is the /32 mesh address allocated to the node. Keys are stored
    so the master can provision peers later; they are never returned by the API.
    """

    __tablename__ = "workers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Agent endpoint
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    ip: Mapped[str] = mapped_column(String(255), nullable=False)
    port: Mapped[int] = mapped_column(Integer, nullable=False)
    api_key: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # WireGuard identity
    private_key: Mapped[str] = mapped_column(Text, nullable=False, default="")
    public_key: Mapped[str] = mapped_column(Text, nullable=False, default="")
    cidr: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_worker_cidr", "cidr", unique=True),
    )

    @property
    def address(self) -> str:
        """Agent address as shown in listings."""
        return f"{self.ip}:{self.port}"

    def __repr__(self) -> str:
        return f"<Worker(id={self.id}, name={self.name}, address={self.address}, cidr={self.cidr})>"
