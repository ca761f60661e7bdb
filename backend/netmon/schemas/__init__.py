"""
Pydantic schemas package.
"""

from .host import (
    ErrorResponse,
    HealthResponse,
    HostActionResponse,
    HostDetailResponse,
    LatencySample,
)
from .metrics import HostMetrics, MetricsResponse
from .traceroute import (
    HopResponse,
    ProblemResponse,
    TracerouteResponse,
    TraceRequestResponse,
)

__all__ = [
    # Hosts
    "ErrorResponse",
    "HealthResponse",
    "HostActionResponse",
    "HostDetailResponse",
    "LatencySample",
    # Metrics
    "HostMetrics",
    "MetricsResponse",
    # Traceroute
    "HopResponse",
    "ProblemResponse",
    "TracerouteResponse",
    "TraceRequestResponse",
]
