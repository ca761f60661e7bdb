"""
Bounded, time-ordered alert log.
"""

from collections import deque
import logging
import threading
import time
from typing import Callable, List, Optional

from ..models import AlertEntry, AlertKind

logger = logging.getLogger(__name__)


class AlertLog:
    """Append-only FIFO of alerts capped at ``capacity`` entries.

    Entries are stored oldest-first; appending to a full log evicts the
    oldest entry. Append order is the order in which the lock is acquired,
    which is the order events are observed.
    """

    def __init__(self, capacity: int = 500, clock: Callable[[], float] = time.time):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._entries = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._clock = clock
        self.total_appended = 0

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def append(self, entry: AlertEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            self.total_appended += 1

    def add(self, message: str, kind: AlertKind = AlertKind.INFO) -> AlertEntry:
        """Timestamp and append a new alert. Returns the stored entry."""
        with self._lock:
            entry = AlertEntry(timestamp=self._clock(), message=message, kind=AlertKind(kind))
            self._entries.append(entry)
            self.total_appended += 1
        logger.debug(f"Alert [{entry.kind.value}] {message}")
        return entry

    def recent(self, n: Optional[int] = None) -> List[AlertEntry]:
        """Return the ``n`` most recent entries (all if None), newest last."""
        with self._lock:
            entries = list(self._entries)
        if n is None:
            return entries
        if n <= 0:
            return []
        return entries[-n:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
