from __future__ import annotations

import copy
import json
import threading
import time
from typing import Any, Callable

from goldpulse.integrations.session_storage import MemorySessionStorage, SessionStorage

_MISS = object()


class ResponseCache:
    """Short-TTL cache shared by every fetch path.

    The in-memory map is authoritative. Each write is mirrored to session
    storage as a single JSON document, and the map is rehydrated from it at
    construction. Values must be JSON-compatible.
    """

    MISS = _MISS

    def __init__(
        self,
        storage: SessionStorage | None = None,
        *,
        storage_key: str = "api_cache",
        default_ttl_sec: float = 60.0,
        max_storage_bytes: int = 5 * 1024 * 1024,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage if storage is not None else MemorySessionStorage()
        self.storage_key = storage_key
        self.default_ttl_sec = default_ttl_sec
        self.max_storage_bytes = max_storage_bytes
        self.clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, dict[str, Any]] = {}
        self.hits = 0
        self.misses = 0
        self.expired = 0
        self.evicted = 0
        self._load_from_storage()

    def _load_from_storage(self) -> None:
        raw = self.storage.get_item(self.storage_key)
        if not raw:
            return
        try:
            stored = json.loads(raw)
        except json.JSONDecodeError as exc:
            print(f"[CACHE][load_failed] error={exc}", flush=True)
            return
        if not isinstance(stored, dict):
            return

        now = self.clock()
        for key, entry in stored.items():
            try:
                created_at = float(entry["created_at"])
                ttl = float(entry["ttl"])
                value = entry["value"]
            except (KeyError, TypeError, ValueError):
                continue
            if now - created_at <= ttl:
                self._entries[key] = {"value": value, "created_at": created_at, "ttl": ttl}
        print(f"[CACHE][rehydrated] entries={len(self._entries)} stored={len(stored)}", flush=True)

    def _save_to_storage(self) -> None:
        # caller holds the lock
        serialized = json.dumps(self._entries, ensure_ascii=False)
        while len(serialized.encode("utf-8")) > self.max_storage_bytes and self._entries:
            oldest = min(self._entries, key=lambda k: self._entries[k]["created_at"])
            self._entries.pop(oldest)
            self.evicted += 1
            print(f"[CACHE][evict_oldest] key={oldest}", flush=True)
            serialized = json.dumps(self._entries, ensure_ascii=False)
        try:
            self.storage.set_item(self.storage_key, serialized)
        except OSError as exc:
            print(f"[CACHE][save_failed] error={exc}", flush=True)

    def get(self, key: str) -> Any:
        """Return a copy of the cached value, or ``ResponseCache.MISS``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return _MISS
            if self.clock() - entry["created_at"] > entry["ttl"]:
                self._entries.pop(key, None)
                self.expired += 1
                self.misses += 1
                self._save_to_storage()
                return _MISS
            self.hits += 1
            return copy.deepcopy(entry["value"])

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            self._entries[key] = {
                "value": copy.deepcopy(value),
                "created_at": self.clock(),
                "ttl": float(self.default_ttl_sec if ttl is None else ttl),
            }
            self._save_to_storage()

    def clear(self, pattern: str | None = None) -> int:
        with self._lock:
            if not pattern:
                removed = len(self._entries)
                self._entries.clear()
            else:
                keys = [k for k in self._entries if pattern in k]
                for k in keys:
                    self._entries.pop(k, None)
                removed = len(keys)
            self._save_to_storage()
        print(f"[CACHE][clear] pattern={pattern or '*'} removed={removed}", flush=True)
        return removed

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def metrics(self) -> dict[str, int]:
        with self._lock:
            return {
                "cache_entries": len(self._entries),
                "cache_hits": self.hits,
                "cache_misses": self.misses,
                "cache_expired": self.expired,
                "cache_evicted": self.evicted,
            }
