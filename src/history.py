"""
In-memory history of completed runs.

Keeps the most recent runs in insertion order and drops the
oldest once the bound is exceeded.
"""

import threading
from collections import deque
from datetime import datetime
from typing import Optional, Sequence

from .models import ProviderResult, RunRecord


MAX_HISTORY = 10


class RunHistory:
    """Bounded FIFO of ranked result sets, newest last."""

    def __init__(self, max_runs: int = MAX_HISTORY):
        if max_runs < 1:
            raise ValueError(f"max_runs must be at least 1, got {max_runs}")
        self.max_runs = max_runs
        self._runs: deque[RunRecord] = deque(maxlen=max_runs)
        self._lock = threading.Lock()

    def append(self, results: Sequence[ProviderResult]) -> RunRecord:
        """
        Record one run's ranked results.

        The run timestamp is taken from the results, which all
        share the run start time.
        """
        started_at = results[0].timestamp if results else datetime.now()
        record = RunRecord(started_at=started_at, results=tuple(results))
        with self._lock:
            self._runs.append(record)
        return record

    def all(self) -> list[RunRecord]:
        """All stored runs, oldest first."""
        with self._lock:
            return list(self._runs)

    def latest(self) -> Optional[RunRecord]:
        with self._lock:
            return self._runs[-1] if self._runs else None

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)
