from __future__ import annotations

import copy
import threading
from concurrent.futures import Future
from typing import Callable, TypeVar

T = TypeVar("T")


class InFlightDeduplicator:
    """Coalesce concurrent calls that share a key into one execution.

    The leader gets the value ``fn`` returned. Joiners each get a deep copy,
    so no caller can mutate what another caller holds.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tickets: dict[str, Future] = {}
        self.started = 0
        self.coalesced = 0

    def run(self, key: str, fn: Callable[[], T]) -> T:
        with self._lock:
            ticket = self._tickets.get(key)
            leader = ticket is None
            if leader:
                ticket = Future()
                self._tickets[key] = ticket
                self.started += 1
            else:
                self.coalesced += 1

        if not leader:
            print(f"[QUOTE][inflight_join] key={key}", flush=True)
            return copy.deepcopy(ticket.result())

        try:
            result = fn()
        except BaseException as exc:
            self._settle(key)
            ticket.set_exception(exc)
            raise
        self._settle(key)
        ticket.set_result(result)
        return result

    def _settle(self, key: str) -> None:
        with self._lock:
            self._tickets.pop(key, None)

    def pending(self) -> int:
        with self._lock:
            return len(self._tickets)

    def metrics(self) -> dict[str, int]:
        with self._lock:
            return {
                "inflight_pending": len(self._tickets),
                "inflight_started": self.started,
                "inflight_coalesced": self.coalesced,
            }
