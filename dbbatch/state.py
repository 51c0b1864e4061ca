"""
Per‑engine run state: settings that persist across calls and the result
envelope that is rebuilt for every call.
"""
from __future__ import annotations

import dataclasses
import typing as t

from dbbatch.constants import DEFAULT_MAX_RUN_TIME, DEFAULT_MAX_TRIES, DEFAULT_SLEEP


def _floor(value: int, minimum: int = 1) -> int:
    return max(int(value), minimum)


@dataclasses.dataclass
class Settings:
    """Engine knobs.  Every number is clamped to at least 1."""

    max_run_time: int = DEFAULT_MAX_RUN_TIME
    max_tries: int = DEFAULT_MAX_TRIES
    sleep: int = DEFAULT_SLEEP
    debug: bool = False

    def __post_init__(self) -> None:
        self.max_run_time = _floor(self.max_run_time)
        self.max_tries = _floor(self.max_tries)
        self.sleep = _floor(self.sleep)

    def update(
        self,
        *,
        max_run_time: int | None = None,
        max_tries: int | None = None,
        sleep: int | None = None,
    ) -> None:
        """Change only the values that were passed."""
        if max_run_time is not None:
            self.max_run_time = _floor(max_run_time)
        if max_tries is not None:
            self.max_tries = _floor(max_tries)
        if sleep is not None:
            self.sleep = _floor(sleep)


@dataclasses.dataclass
class ResultEnvelope:
    result: t.Any = None
    affected: int = 0
    # None until the run finishes, False when the driver has no last id
    insert_id: str | bool | None = None
