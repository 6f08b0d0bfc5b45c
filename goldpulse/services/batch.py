from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Optional

from goldpulse.schemas.quote import Instrument, Quote
from goldpulse.services.catalog import CATEGORY_NAMES
from goldpulse.services.quote_fetcher import QuoteFetcher

ProgressCallback = Callable[[int, int, str], None]


class BatchOrchestrator:
    """Fetch many instruments with per-symbol failure isolation.

    ``max_workers=1`` runs strictly in order. A larger pool only overlaps
    waiting; request starts are still spaced by the fetcher's pacer.
    """

    def __init__(self, fetcher: QuoteFetcher, max_workers: int = 1) -> None:
        self.fetcher = fetcher
        self.max_workers = max(1, int(max_workers))
        self.batches = 0
        self.isolated_failures = 0
        self._failures_lock = threading.Lock()
        self.last_batch_total = 0

    def _unique_instruments(self, instruments: Iterable[Instrument | str]) -> list[Instrument]:
        out: list[Instrument] = []
        seen: set[str] = set()
        for item in instruments:
            symbol = item.symbol if isinstance(item, Instrument) else str(item).strip()
            if not symbol or symbol in seen:
                continue
            seen.add(symbol)
            # unknown symbols fail the whole call before any network traffic
            out.append(self.fetcher.catalog.get(symbol))
        return out

    def _fetch_isolated(self, instrument: Instrument) -> Quote:
        try:
            return self.fetcher.fetch(instrument)
        except Exception as exc:
            with self._failures_lock:
                self.isolated_failures += 1
            print(f"[BATCH][symbol_failed] symbol={instrument.symbol} error={exc!r}", flush=True)
            return self.fetcher.fallback_quote(instrument)

    def fetch_many(
        self,
        instruments: Iterable[Instrument | str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> dict[str, Quote]:
        targets = self._unique_instruments(instruments)
        total = len(targets)
        results: dict[str, Quote] = {}
        completed = 0

        def _done(instrument: Instrument, quote: Quote) -> None:
            nonlocal completed
            results[instrument.symbol] = quote
            completed += 1
            if on_progress is not None:
                on_progress(completed, total, instrument.symbol)

        if self.max_workers == 1 or total <= 1:
            for instrument in targets:
                _done(instrument, self._fetch_isolated(instrument))
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="quote-batch") as pool:
                futures = {pool.submit(self._fetch_isolated, i): i for i in targets}
                for future in as_completed(futures):
                    _done(futures[future], future.result())

        self.batches += 1
        self.last_batch_total = total
        provenance = {}
        for quote in results.values():
            provenance[quote.provenance] = provenance.get(quote.provenance, 0) + 1
        print(
            f"[BATCH][resolved] total={total} workers={self.max_workers} "
            + " ".join(f"{k}={v}" for k, v in sorted(provenance.items())),
            flush=True,
        )
        # callers get symbols back in request order
        return {i.symbol: results[i.symbol] for i in targets}

    def fetch_all_categories(self, on_progress: Optional[ProgressCallback] = None) -> dict[str, dict]:
        categories = self.fetcher.catalog.categories()
        symbols = [i.symbol for members in categories.values() for i in members]
        quotes = self.fetch_many(symbols, on_progress)
        return {
            key: {
                "name": CATEGORY_NAMES.get(key, key),
                "instruments": [i.model_dump() for i in members],
                "quotes": {i.symbol: quotes[i.symbol] for i in members},
            }
            for key, members in categories.items()
        }

    def metrics(self) -> dict[str, int]:
        return {
            "batches": self.batches,
            "batch_isolated_failures": self.isolated_failures,
            "batch_last_total": self.last_batch_total,
        }
