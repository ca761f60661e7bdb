"""
Wiring for the monitoring engine.

NetworkMonitor owns every piece of engine state and injects it into the
scheduler and the snapshot API; nothing is reached through module globals
except the process-wide instance returned by get_monitor().
"""

import time
from typing import Optional

from .config import settings as default_settings
from .errors import HostNotFound, InvalidHost
from .models import AlertKind
from .monitoring import (
    AlertLog,
    HealthTracker,
    HostRegistry,
    Membership,
    SnapshotAPI,
    TraceCache,
    normalize_host,
)
from .scanner import Prober, Tracer, build_prober
from .scheduler import MonitorScheduler


class NetworkMonitor:
    """Facade over registry, tracker, alert log, trace cache and scheduler."""

    def __init__(
        self,
        config=None,
        prober: Optional[Prober] = None,
        tracer: Optional[Tracer] = None,
        clock=time.time,
    ):
        self.config = config or default_settings
        self.registry = HostRegistry()
        self.alerts = AlertLog(capacity=self.config.alert_capacity, clock=clock)
        self.traces = TraceCache(clock=clock)
        self.tracker = HealthTracker.from_settings(self.config, clock=clock)
        self.prober = prober or build_prober(self.config)
        self.tracer = tracer or Tracer(
            samples_per_hop=self.config.trace_samples_per_hop,
            spike_threshold_ms=self.config.trace_spike_threshold_ms,
            spike_factor=self.config.trace_spike_factor,
            resolve_names=self.config.resolve_hop_names,
            clock=clock,
        )
        self.scheduler = MonitorScheduler(
            registry=self.registry,
            tracker=self.tracker,
            alerts=self.alerts,
            traces=self.traces,
            prober=self.prober,
            tracer=self.tracer,
            config=self.config,
        )
        self.snapshots = SnapshotAPI(
            registry=self.registry,
            tracker=self.tracker,
            alerts=self.alerts,
            traces=self.traces,
            trace_fresh_seconds=self.config.trace_fresh_seconds,
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self):
        self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    def add_host(self, host: str) -> Membership:
        """Start monitoring ``host``.

        The "Started monitoring" notice is appended before the host's loop
        exists and therefore precedes every alert the host produces.

        Raises:
            InvalidHost: Malformed host identifier
            HostLimitReached: No polling worker left
        """
        return self.scheduler.add_host(
            normalize_host(host),
            on_added=lambda added: self.alerts.add(f"Started monitoring {added}", AlertKind.INFO),
        )

    def remove_host(self, host: str) -> Membership:
        """Stop monitoring ``host``. Raises HostNotFound if it was not monitored."""
        host = self.canonical(host)
        result = self.scheduler.remove_host(host)
        if result == Membership.NOT_FOUND:
            raise HostNotFound(f"Host {host} is not monitored")
        self.alerts.add(f"Stopped monitoring {host}", AlertKind.INFO)
        return result

    def request_trace(self, host: str) -> bool:
        """Schedule a trace; False when one is already running for ``host``."""
        return self.scheduler.request_trace(self.canonical(host))

    def canonical(self, host: str) -> str:
        """Normalise a host used for lookups; malformed input cannot be monitored."""
        try:
            return normalize_host(host)
        except InvalidHost:
            raise HostNotFound(f"Host {host} is not monitored")


# Global monitor instance
_monitor: Optional[NetworkMonitor] = None


def get_monitor() -> NetworkMonitor:
    """Get the global monitor instance.

    Returns:
        NetworkMonitor instance
    """
    global _monitor
    if _monitor is None:
        _monitor = NetworkMonitor()
    return _monitor
