from __future__ import annotations

import threading
from typing import Any


class InMemoryPillarSystemsRepository:
    """Per-series counters; ``increment`` is the only write path."""

    def __init__(self, systems: dict[str, dict[str, Any]]) -> None:
        self._systems = systems
        self._guard = threading.Lock()
        self._series_locks: dict[str, threading.Lock] = {}

    def _series_lock(self, series_prefix: str) -> threading.Lock:
        with self._guard:
            lock = self._series_locks.get(series_prefix)
            if lock is None:
                lock = threading.Lock()
                self._series_locks[series_prefix] = lock
            return lock

    def get(self, *, series_prefix: str) -> dict[str, Any] | None:
        row = self._systems.get(series_prefix)
        if row is None:
            return None
        return dict(row)

    def increment(self, *, series_prefix: str, count: int, now: str) -> tuple[int, int]:
        if count <= 0:
            raise ValueError("count must be positive")
        with self._series_lock(series_prefix):
            row = self._systems.get(series_prefix)
            if row is None:
                row = {"series_prefix": series_prefix, "last_issued_number": 0, "created_at": now}
            first = int(row["last_issued_number"]) + 1
            last = first + count - 1
            self._systems[series_prefix] = {**row, "last_issued_number": last, "updated_at": now}
        return first, last
