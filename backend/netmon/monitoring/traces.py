"""
Latest-wins cache of trace results per host.
"""

import threading
import time
from typing import Callable, Dict, Optional

from ..models import TraceResult


class TraceCache:
    """Holds the most recent TraceResult per host; results are never edited in place."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._results: Dict[str, TraceResult] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def put(self, result: TraceResult) -> None:
        with self._lock:
            self._results[result.host] = result

    def get(self, host: str) -> Optional[TraceResult]:
        with self._lock:
            return self._results.get(host)

    def discard(self, host: str) -> None:
        with self._lock:
            self._results.pop(host, None)

    def is_fresh(self, host: str, max_age: float) -> bool:
        """Whether a result exists and finished less than ``max_age`` seconds ago."""
        result = self.get(host)
        if result is None:
            return False
        return self._clock() - result.completed_at <= max_age

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
