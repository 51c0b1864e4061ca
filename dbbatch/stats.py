"""Query counter and per‑statement timing histogram."""
from __future__ import annotations

import copy
import threading


class RunStats:
    """
    Collects how many statements ran and how long each statement text took.

    Timings are appended, never overwritten, so re-running the same text
    keeps its full history.  One collector can be shared between engines.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.queries: int = 0
        self.timings: dict[str, list[float]] = {}

    def count(self) -> None:
        with self._lock:
            self.queries += 1

    def record(self, statement: str, seconds: float) -> None:
        with self._lock:
            self.timings.setdefault(statement, []).append(seconds)

    def snapshot(self) -> dict[str, object]:
        """Return a detached copy safe to hand to callers."""
        with self._lock:
            return {"queries": self.queries, "timings": copy.deepcopy(self.timings)}

    def reset(self) -> None:
        with self._lock:
            self.queries = 0
            self.timings = {}
