"""
Traceroute model for network path information.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Hop:
    """One responding router along the path."""

    index: int  # TTL/hop number
    ip: str
    latency_avg: float  # Average round trip time in ms
    hostname: Optional[str] = None

    def __repr__(self):
        return f"<Hop(hop={self.index}, ip='{self.ip}')>"


@dataclass(frozen=True)
class Problem:
    """A detected issue along the route."""

    description: str


@dataclass(frozen=True)
class TraceResult:
    """Result of one route trace; replaced wholesale by the next trace.

    Attributes:
        host: Destination that was traced
        hop_count: Index of the last responding hop
        total_latency: Latency to the destination in ms, None if not reached
        hops: Responding hops in TTL order
        problems: Detected problems (latency spikes, silent hops, incomplete route)
        reached: Whether the destination answered
        completed_at: Unix time the trace finished
    """

    host: str
    hop_count: int
    total_latency: Optional[float]
    hops: tuple = field(default_factory=tuple)
    problems: tuple = field(default_factory=tuple)
    reached: bool = False
    completed_at: float = 0.0
