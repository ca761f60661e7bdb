"""
Monitoring state: host registry, health tracker, alert log, trace cache, snapshots.
"""

from .alerts import AlertLog
from .health import HealthTracker, HealthUpdate
from .registry import HostRegistry, Membership, normalize_host
from .snapshot import SnapshotAPI, trace_to_wire
from .traces import TraceCache

__all__ = [
    "AlertLog",
    "HealthTracker",
    "HealthUpdate",
    "HostRegistry",
    "Membership",
    "normalize_host",
    "SnapshotAPI",
    "trace_to_wire",
    "TraceCache",
]
