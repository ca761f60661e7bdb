"""
Alert model for the rolling alert feed.
"""

from dataclasses import dataclass
import enum


class AlertKind(str, enum.Enum):
    """Enumeration of alert categories understood by the dashboard.

    Attributes:
        ANOMALY: Latency sample deviated sharply from the host's EMA
        TRACEROUTE: Route trace finished with problems, or failed
        FAILURE: Host crossed the failure threshold, or recovered from it
        ERROR: Unexpected exception inside a polling loop
        INFO: Housekeeping events such as hosts being added or removed
    """

    ANOMALY = "anomaly"
    TRACEROUTE = "traceroute"
    FAILURE = "failure"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class AlertEntry:
    """A single immutable alert.

    Attributes:
        timestamp: Unix time in seconds when the event was observed
        message: Human-readable description
        kind: Alert category
    """

    timestamp: float
    message: str
    kind: AlertKind

    def as_wire(self) -> list:
        """Render as the ``[timestamp, message, kind]`` triple used by /metrics."""
        return [self.timestamp, self.message, self.kind.value]
