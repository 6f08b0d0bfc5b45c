from __future__ import annotations

import copy
import threading
from typing import Any, Callable


class InMemoryUiStore:
    """Dotted-path state store with per-path subscribers.

    Subscribers registered on a prefix (``prices``) are notified for any write
    below it (``prices.QQQ``).
    """

    def __init__(self, initial: dict | None = None) -> None:
        self._lock = threading.Lock()
        self._state: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._subscribers: dict[str, list[Callable[[str, Any, Any], None]]] = {}

    def get(self, path: str | None = None) -> Any:
        with self._lock:
            value: Any = self._state
            if path:
                for part in path.split("."):
                    if not isinstance(value, dict):
                        return None
                    value = value.get(part)
            return copy.deepcopy(value)

    def set_state(self, path: str, value: Any) -> None:
        old = self.get(path)
        parts = path.split(".")
        with self._lock:
            target = self._state
            for part in parts[:-1]:
                nxt = target.get(part)
                if not isinstance(nxt, dict):
                    nxt = {}
                    target[part] = nxt
                target = nxt
            target[parts[-1]] = copy.deepcopy(value)
            callbacks = [
                cb
                for key, cbs in self._subscribers.items()
                if path == key or path.startswith(key + ".")
                for cb in cbs
            ]
        for cb in callbacks:
            cb(path, value, old)

    def subscribe(self, path: str, callback: Callable[[str, Any, Any], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.setdefault(path, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                cbs = self._subscribers.get(path, [])
                if callback in cbs:
                    cbs.remove(callback)

        return _unsubscribe
