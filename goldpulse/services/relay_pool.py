from __future__ import annotations

import threading
from urllib.parse import quote

from goldpulse.schemas.relay import RelayEndpoint


class RelayPool:
    """Ranks relay endpoints by consecutive failures.

    The current endpoint is always the one with the lowest failure count,
    ties going to configuration order. Endpoints are never dropped.
    """

    def __init__(self, endpoints: list[RelayEndpoint]) -> None:
        if not endpoints:
            raise ValueError("at least one relay endpoint is required")
        self._lock = threading.Lock()
        self._endpoints = [e.model_copy(deep=True) for e in endpoints]
        self._current = 0
        self.failures_total = 0
        self.successes_total = 0
        self.switches = 0

    def __len__(self) -> int:
        return len(self._endpoints)

    def _index_of(self, endpoint: RelayEndpoint) -> int:
        for index, row in enumerate(self._endpoints):
            if row.name == endpoint.name:
                return index
        raise ValueError(f"unknown relay endpoint: {endpoint.name}")

    def current_endpoint(self) -> RelayEndpoint:
        with self._lock:
            return self._endpoints[self._current].model_copy()

    def record_failure(self, endpoint: RelayEndpoint) -> RelayEndpoint:
        with self._lock:
            index = self._index_of(endpoint)
            self._endpoints[index].failures += 1
            self.failures_total += 1

            best = min(range(len(self._endpoints)), key=lambda i: (self._endpoints[i].failures, i))
            previous = self._current
            self._current = best
            if best != previous:
                self.switches += 1
            selected = self._endpoints[best]
            print(
                f"[RELAY][failure] relay={endpoint.name} failures={self._endpoints[index].failures} "
                f"current={selected.name}",
                flush=True,
            )
            return selected.model_copy()

    def record_success(self, endpoint: RelayEndpoint) -> None:
        # only the active endpoint is reset, whichever one reported
        with self._lock:
            self.successes_total += 1
            active = self._endpoints[self._current]
            if active.failures:
                print(f"[RELAY][recovered] relay={active.name} reported_by={endpoint.name}", flush=True)
            active.failures = 0

    @staticmethod
    def wrap(endpoint: RelayEndpoint, target_url: str) -> str:
        return endpoint.url_template.replace("{url}", quote(target_url, safe=""))

    def snapshot(self) -> list[RelayEndpoint]:
        with self._lock:
            return [e.model_copy() for e in self._endpoints]

    def metrics(self) -> dict:
        with self._lock:
            return {
                "relay_current": self._endpoints[self._current].name,
                "relay_failures": {e.name: e.failures for e in self._endpoints},
                "relay_failures_total": self.failures_total,
                "relay_successes_total": self.successes_total,
                "relay_switches": self.switches,
            }
