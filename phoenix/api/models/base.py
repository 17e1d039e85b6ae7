"""
Phoenix - Base API Models
=========================

Common response models.
"""

from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class HealthStatus(BaseModel):
    """Health check payload."""

    status: str = "ok"
    bot_connected: bool = False
    guilds: int = 0
    oauth_enabled: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)


__all__ = ["APIResponse", "HealthStatus"]
