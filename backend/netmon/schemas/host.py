"""
Pydantic schemas for host management and host detail.
"""

from pydantic import BaseModel
from typing import Optional


class HostActionResponse(BaseModel):
    """Result of an add/remove request."""

    status: str  # added | already_present | removed
    host: str


class LatencySample(BaseModel):
    """One successful probe in a host's recent history."""

    timestamp: float
    latency: float


class HostDetailResponse(BaseModel):
    """Full state of one monitored host."""

    host: str
    state: str
    latest: Optional[float] = None
    ema: Optional[float] = None
    consecutive_failures: int = 0
    last_probe_at: Optional[float] = None
    last_traced_at: Optional[float] = None
    history: list[LatencySample] = []


class HealthResponse(BaseModel):
    """Service health check."""

    status: str
    service: str
    version: str
    hosts: int
    running: bool


class ErrorResponse(BaseModel):
    """Error body shared by every failing endpoint."""

    error: str
