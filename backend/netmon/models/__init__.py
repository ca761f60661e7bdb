"""
Engine data models package.
"""

from .alert import AlertEntry, AlertKind
from .health import HealthRecord, HealthState
from .traceroute import Hop, Problem, TraceResult

__all__ = [
    "AlertEntry",
    "AlertKind",
    "HealthRecord",
    "HealthState",
    "Hop",
    "Problem",
    "TraceResult",
]
