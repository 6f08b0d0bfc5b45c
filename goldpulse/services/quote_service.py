from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from goldpulse.schemas.quote import HealthStatus, HistorySeries, Instrument, Quote
from goldpulse.services.batch import BatchOrchestrator, ProgressCallback
from goldpulse.services.quote_fetcher import QuoteFetcher

_HEALTH_CHART_SYMBOL = "^IXIC"
_HEALTH_METALS_SYMBOL = "XAU-USD"


class QuoteService:
    """UI-facing entry point. Publishes results to the UI store."""

    def __init__(
        self,
        *,
        fetcher: QuoteFetcher,
        batch: BatchOrchestrator,
        store: Any,
        health_timeout_sec: float = 5.0,
    ) -> None:
        self.fetcher = fetcher
        self.batch = batch
        self.store = store
        self.health_timeout_sec = health_timeout_sec
        self.last_health: HealthStatus | None = None
        self._publish_lock = threading.Lock()

    def _publish(self, *quotes: Quote) -> None:
        # one "prices" map; dotted symbols like 000001.SS must not become store paths
        with self._publish_lock:
            prices = dict(self.store.get("prices") or {})
            for quote in quotes:
                prices[quote.symbol] = quote.model_dump(mode="json")
            self.store.set_state("prices", prices)

    def _stamp(self) -> None:
        self.store.set_state("lastUpdate", datetime.now(timezone.utc).isoformat())

    def fetch(self, instrument: Instrument | str) -> Quote:
        quote = self.fetcher.fetch(instrument)
        self._publish(quote)
        self._stamp()
        return quote

    def fetch_many(
        self,
        instruments: Iterable[Instrument | str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> dict[str, Quote]:
        self.store.set_state("isLoading", True)
        try:
            quotes = self.batch.fetch_many(instruments, on_progress)
        finally:
            self.store.set_state("isLoading", False)
        self._publish(*quotes.values())
        self._stamp()
        return quotes

    def fetch_all_categories(self, on_progress: Optional[ProgressCallback] = None) -> dict[str, dict]:
        self.store.set_state("isLoading", True)
        try:
            grouped = self.batch.fetch_all_categories(on_progress)
        finally:
            self.store.set_state("isLoading", False)
        self._publish(*(q for category in grouped.values() for q in category["quotes"].values()))
        self._stamp()
        return grouped

    def fetch_history(self, instrument: Instrument | str, interval: str = "1h", range_: str = "5d") -> HistorySeries:
        return self.fetcher.fetch_history(instrument, interval, range_)

    def clear_cache(self, pattern: str | None = None) -> int:
        return self.fetcher.cache.clear(pattern)

    def health_check(self) -> HealthStatus:
        metals = self.fetcher.catalog.get(_HEALTH_METALS_SYMBOL)
        chart_instrument = self.fetcher.catalog.get(_HEALTH_CHART_SYMBOL)
        metals_provider = self.fetcher.providers["metals"]
        chart_provider = self.fetcher.providers["chart"]

        provider_ok = self.fetcher.probe(
            metals_provider.quote_url(metals),
            metals_provider,
            via_relay=False,
            timeout=self.health_timeout_sec,
        )
        relay_ok = self.fetcher.probe(
            chart_provider.quote_url(chart_instrument),
            chart_provider,
            via_relay=True,
            timeout=self.health_timeout_sec,
        )

        status = HealthStatus(provider_ok=provider_ok, relay_ok=relay_ok, checked_at=datetime.now(timezone.utc))
        if not provider_ok and not relay_ok:
            self.store.set_state("error", "QUOTE_SOURCES_UNAVAILABLE")
        else:
            self.store.set_state("error", None)
        self.last_health = status
        print(f"[HEALTH][check] provider_ok={provider_ok} relay_ok={relay_ok}", flush=True)
        return status

    def metrics(self) -> dict:
        out: dict = {}
        out.update(self.fetcher.metrics())
        out.update(self.fetcher.cache.metrics())
        out.update(self.fetcher.deduplicator.metrics())
        out.update(self.fetcher.relay_pool.metrics())
        out.update(self.batch.metrics())
        return out
