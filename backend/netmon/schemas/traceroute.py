"""
Pydantic schemas for traceroute results.
"""

from pydantic import BaseModel
from typing import Optional


class HopResponse(BaseModel):
    """One responding hop."""

    hop: int
    ip: str
    hostname: Optional[str] = None
    latency_avg: float


class ProblemResponse(BaseModel):
    """Detected route problem."""

    description: str


class TracerouteResponse(BaseModel):
    """Latest trace for a host."""

    host: str
    hop_count: int
    total_latency: Optional[float] = None
    reached: bool
    completed_at: float
    problems: list[ProblemResponse] = []
    hops: list[HopResponse] = []


class TraceRequestResponse(BaseModel):
    """Acknowledgement for an on-demand trace."""

    status: str  # scheduled | already_running
    host: str
