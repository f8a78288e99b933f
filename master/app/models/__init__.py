"""Database models for the mesh master."""
from app.models.worker import Worker

__all__ = [
    "Worker",
]
