"""
Per-host health state machine.

Each probe outcome drives one explicit transition between HEALTHY, DEGRADED
and FAILED. The tracker returns a HealthUpdate describing the transition and
the alerts it produced; committing those alerts is the scheduler's job.
"""

from collections import deque
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from ..models import AlertKind, HealthRecord, HealthState

logger = logging.getLogger(__name__)


@dataclass
class HealthUpdate:
    """Result of feeding one probe outcome into the tracker.

    Attributes:
        host: Host the update applies to
        previous: State before the probe
        current: State after the probe
        record: Copy of the record after the update
        alerts: (message, kind) pairs to append to the alert log
        trace_requested: Whether an automatic trace should be started
    """

    host: str
    previous: HealthState
    current: HealthState
    record: HealthRecord
    alerts: List[Tuple[str, AlertKind]] = field(default_factory=list)
    trace_requested: bool = False

    @property
    def changed(self) -> bool:
        return self.previous != self.current


class HealthTracker:
    """Owns one HealthRecord per host.

    A record is only ever mutated by its own host's polling loop; the lock
    keeps readers from seeing a half-applied update.
    """

    def __init__(
        self,
        alpha: float = 0.2,
        anomaly_factor: float = 3.0,
        anomaly_min_delta_ms: float = 0.0,
        failure_threshold: int = 3,
        trace_cooldown: float = 60.0,
        history_size: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        if not 0 < alpha <= 1:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be at least 1, got {failure_threshold}")
        self.alpha = alpha
        self.anomaly_factor = anomaly_factor
        self.anomaly_min_delta_ms = anomaly_min_delta_ms
        self.failure_threshold = failure_threshold
        self.trace_cooldown = trace_cooldown
        self.history_size = history_size
        self._clock = clock
        self._records: Dict[str, HealthRecord] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.time) -> "HealthTracker":
        return cls(
            alpha=settings.ema_alpha,
            anomaly_factor=settings.anomaly_factor,
            anomaly_min_delta_ms=settings.anomaly_min_delta_ms,
            failure_threshold=settings.failure_threshold,
            trace_cooldown=settings.trace_cooldown_seconds,
            history_size=settings.history_size,
            clock=clock,
        )

    def _record_for(self, host: str) -> HealthRecord:
        record = self._records.get(host)
        if record is None:
            record = HealthRecord(host=host, samples=deque(maxlen=self.history_size))
            self._records[host] = record
        return record

    def is_anomaly(self, sample: float, ema: float) -> bool:
        """Whether ``sample`` deviates sharply from the established trend ``ema``."""
        if sample > self.anomaly_factor * ema:
            return True
        if self.anomaly_min_delta_ms > 0 and sample - ema > self.anomaly_min_delta_ms:
            return True
        return False

    def _cooldown_elapsed(self, record: HealthRecord, now: float) -> bool:
        if record.last_trace_requested_at is None:
            return True
        return now - record.last_trace_requested_at >= self.trace_cooldown

    def record_success(self, host: str, latency: float) -> HealthUpdate:
        """Apply a successful sample of ``latency`` ms."""
        now = self._clock()
        with self._lock:
            record = self._record_for(host)
            previous = record.state
            ema_prev = record.ema
            alerts = []
            trace_requested = False

            anomaly = ema_prev is not None and self.is_anomaly(latency, ema_prev)

            if ema_prev is None:
                record.ema = latency
            else:
                record.ema = self.alpha * latency + (1 - self.alpha) * ema_prev
            record.latest = latency
            record.consecutive_failures = 0
            record.samples.append((now, latency))
            record.last_probe_at = now

            if previous == HealthState.FAILED:
                alerts.append(
                    (f"{host} recovered: responding again at {latency:.1f}ms", AlertKind.FAILURE)
                )

            if anomaly:
                record.state = HealthState.DEGRADED
                alerts.append(
                    (
                        f"Anomaly detected on {host}: {latency:.1f}ms (EMA: {ema_prev:.2f}ms)",
                        AlertKind.ANOMALY,
                    )
                )
                if self._cooldown_elapsed(record, now):
                    record.last_trace_requested_at = now
                    trace_requested = True
            else:
                record.state = HealthState.HEALTHY

            update = HealthUpdate(
                host=host,
                previous=previous,
                current=record.state,
                record=record.copy(),
                alerts=alerts,
                trace_requested=trace_requested,
            )

        if update.changed:
            logger.warning(f"{host}: {previous.value} -> {update.current.value}")
        return update

    def record_failure(self, host: str, error: Optional[Exception] = None) -> HealthUpdate:
        """Apply a failed probe (timeout or unreachable)."""
        now = self._clock()
        with self._lock:
            record = self._record_for(host)
            previous = record.state
            alerts = []

            record.latest = None
            record.consecutive_failures += 1
            record.last_probe_at = now

            if record.consecutive_failures >= self.failure_threshold:
                if previous != HealthState.FAILED:
                    reason = f" ({error})" if error else ""
                    alerts.append(
                        (
                            f"{host} is unreachable after "
                            f"{record.consecutive_failures} consecutive failed probes{reason}",
                            AlertKind.FAILURE,
                        )
                    )
                record.state = HealthState.FAILED
            else:
                record.state = HealthState.DEGRADED

            update = HealthUpdate(
                host=host,
                previous=previous,
                current=record.state,
                record=record.copy(),
                alerts=alerts,
            )

        if update.changed:
            logger.warning(f"{host}: {previous.value} -> {update.current.value}")
        return update

    def note_trace_requested(self, host: str) -> None:
        """Record an on-demand trace so the automatic cooldown also applies to it."""
        with self._lock:
            record = self._records.get(host)
            if record is not None:
                record.last_trace_requested_at = self._clock()

    def mark_traced(self, host: str, completed_at: float) -> None:
        with self._lock:
            record = self._records.get(host)
            if record is not None:
                record.last_traced_at = completed_at

    def discard(self, host: str) -> None:
        """Drop a host's record; its EMA is gone for good."""
        with self._lock:
            self._records.pop(host, None)

    def get(self, host: str) -> Optional[HealthRecord]:
        with self._lock:
            record = self._records.get(host)
            return record.copy() if record is not None else None

    def records(self) -> Dict[str, HealthRecord]:
        """Consistent copy of every record."""
        with self._lock:
            return {host: record.copy() for host, record in self._records.items()}
