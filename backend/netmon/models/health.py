"""
Health record model kept per monitored host.
"""

from collections import deque
from dataclasses import dataclass, field, replace
from typing import Optional
import enum


class HealthState(str, enum.Enum):
    """Enumeration of per-host health states.

    Attributes:
        HEALTHY: Host answers within its usual latency trend
        DEGRADED: Recent anomaly or isolated failures, short of unreachable
        FAILED: Host missed at least ``failure_threshold`` probes in a row
    """

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class HealthRecord:
    """Smoothed latency state for one host.

    Attributes:
        host: Host identifier the record belongs to
        state: Current health state
        latest: Most recent successful sample in ms, None while unreachable
        ema: Exponential moving average in ms, None until the first success
        consecutive_failures: Failed probes since the last success
        samples: Bounded history of recent successful samples (timestamp, ms)
        last_probe_at: Unix time of the last completed probe
        last_trace_requested_at: Unix time a trace was last requested
        last_traced_at: Unix time the last trace result was stored
    """

    host: str
    state: HealthState = HealthState.HEALTHY
    latest: Optional[float] = None
    ema: Optional[float] = None
    consecutive_failures: int = 0
    samples: deque = field(default_factory=deque)
    last_probe_at: Optional[float] = None
    last_trace_requested_at: Optional[float] = None
    last_traced_at: Optional[float] = None

    def copy(self) -> "HealthRecord":
        """Return a detached copy safe to hand to readers."""
        return replace(self, samples=deque(self.samples, maxlen=self.samples.maxlen))

    def __repr__(self):
        return f"<HealthRecord(host='{self.host}', state='{self.state.value}', ema={self.ema})>"
