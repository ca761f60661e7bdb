"""
Read-only projection of engine state for the dashboard.
"""

from typing import Any, Dict, Optional

from ..errors import HostNotFound
from ..models import TraceResult
from .alerts import AlertLog
from .health import HealthTracker
from .registry import HostRegistry
from .traces import TraceCache


def _round(value: Optional[float]) -> Optional[float]:
    return round(value, 2) if value is not None else None


def trace_to_wire(result: TraceResult) -> Dict[str, Any]:
    """Render a TraceResult in the /api/traceroute response shape."""
    return {
        "host": result.host,
        "hop_count": result.hop_count,
        "total_latency": _round(result.total_latency),
        "reached": result.reached,
        "completed_at": result.completed_at,
        "problems": [{"description": problem.description} for problem in result.problems],
        "hops": [
            {
                "hop": hop.index,
                "ip": hop.ip,
                "hostname": hop.hostname,
                "latency_avg": hop.latency_avg,
            }
            for hop in result.hops
        ],
    }


class SnapshotAPI:
    """Builds point-in-time views from copies; never holds a writer's lock for long."""

    def __init__(
        self,
        registry: HostRegistry,
        tracker: HealthTracker,
        alerts: AlertLog,
        traces: TraceCache,
        trace_fresh_seconds: float = 600.0,
    ):
        self.registry = registry
        self.tracker = tracker
        self.alerts = alerts
        self.traces = traces
        self.trace_fresh_seconds = trace_fresh_seconds

    def snapshot(self) -> Dict[str, Any]:
        """
        Current metrics for every registered host plus the alert feed.

        Returns:
            ``{"metrics": {host: {...}}, "alerts": [[ts, message, kind], ...]}``
            with alerts oldest first
        """
        hosts = self.registry.list()
        records = self.tracker.records()

        metrics = {}
        for host in sorted(hosts):
            record = records.get(host)
            if record is None:
                metrics[host] = {
                    "latest": None,
                    "ema": None,
                    "has_traceroute": self.traces.is_fresh(host, self.trace_fresh_seconds),
                    "state": "healthy",
                    "consecutive_failures": 0,
                }
                continue
            metrics[host] = {
                "latest": _round(record.latest),
                "ema": _round(record.ema),
                "has_traceroute": self.traces.is_fresh(host, self.trace_fresh_seconds),
                "state": record.state.value,
                "consecutive_failures": record.consecutive_failures,
            }

        return {
            "metrics": metrics,
            "alerts": [entry.as_wire() for entry in self.alerts.recent()],
        }

    def traceroute(self, host: str) -> TraceResult:
        """Latest trace for ``host``; raises HostNotFound if unmonitored or never traced."""
        if host not in self.registry:
            raise HostNotFound(f"Host {host} is not monitored")
        result = self.traces.get(host)
        if result is None:
            raise HostNotFound(f"No traceroute available for {host}")
        return result

    def host_detail(self, host: str) -> Dict[str, Any]:
        """State, trend and recent sample history for one host."""
        if host not in self.registry:
            raise HostNotFound(f"Host {host} is not monitored")
        record = self.tracker.get(host)
        trace = self.traces.get(host)
        if record is None:
            return {
                "host": host,
                "state": "healthy",
                "latest": None,
                "ema": None,
                "consecutive_failures": 0,
                "last_probe_at": None,
                "last_traced_at": trace.completed_at if trace else None,
                "history": [],
            }
        return {
            "host": host,
            "state": record.state.value,
            "latest": _round(record.latest),
            "ema": _round(record.ema),
            "consecutive_failures": record.consecutive_failures,
            "last_probe_at": record.last_probe_at,
            "last_traced_at": trace.completed_at if trace else None,
            "history": [
                {"timestamp": ts, "latency": _round(latency)} for ts, latency in record.samples
            ],
        }
