"""
Pydantic schemas for the /metrics snapshot.
"""

from pydantic import BaseModel
from typing import Optional


class HostMetrics(BaseModel):
    """Current health of one host as shown on a dashboard card."""

    latest: Optional[float] = None  # None while the host is unreachable
    ema: Optional[float] = None  # None until the first successful sample
    has_traceroute: bool = False
    state: str = "healthy"
    consecutive_failures: int = 0


class MetricsResponse(BaseModel):
    """Snapshot response: per-host metrics and the alert feed (oldest first)."""

    metrics: dict[str, HostMetrics]
    alerts: list[tuple[float, str, str]]
