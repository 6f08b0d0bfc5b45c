from __future__ import annotations

import threading
import time
from typing import Callable


class RequestPacer:
    """Keep network call starts at least ``interval_sec`` apart across all callers."""

    def __init__(
        self,
        interval_sec: float = 0.1,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval_sec = interval_sec
        self.clock = clock
        self.sleep_fn = sleep_fn
        self._lock = threading.Lock()
        self._last_start: float | None = None
        self.waits = 0

    def wait_turn(self) -> float:
        """Block until the caller may start a request. Returns the time slept."""
        with self._lock:
            slept = 0.0
            if self._last_start is not None:
                remaining = self._last_start + self.interval_sec - self.clock()
                if remaining > 0:
                    self.sleep_fn(remaining)
                    slept = remaining
                    self.waits += 1
            self._last_start = self.clock()
            return slept
