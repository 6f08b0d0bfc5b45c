from __future__ import annotations

import json
import math
import random
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import requests

from goldpulse.errors import (
    FetchTimeoutError,
    MalformedPayloadError,
    ProviderReportedError,
    QuoteFetchError,
    RelayUnreachableError,
)
from goldpulse.integrations.providers import ChartProvider, MetalsProvider
from goldpulse.schemas.quote import HistoryPoint, HistorySeries, Instrument, Quote
from goldpulse.schemas.relay import RelayEndpoint
from goldpulse.services.catalog import InstrumentCatalog
from goldpulse.services.fallback_table import StaticFallbackTable
from goldpulse.services.inflight import InFlightDeduplicator
from goldpulse.services.normalizer import normalize_history, normalize_quote
from goldpulse.services.pacing import RequestPacer
from goldpulse.services.relay_pool import RelayPool
from goldpulse.services.response_cache import ResponseCache

# gold spot feeds have no history endpoint; COMEX gold futures stand in
_HISTORY_UPSTREAM = {"metals": "GC=F"}


class QuoteFetcher:
    """Resolve one instrument to a Quote through cache, relays and fallbacks.

    ``fetch`` only raises ``UnsupportedInstrumentError``. Every transient
    failure degrades through ``quote_strategies`` in order until one returns
    a Quote; the last strategy always does.
    """

    def __init__(
        self,
        *,
        relay_pool: RelayPool,
        cache: ResponseCache,
        deduplicator: InFlightDeduplicator,
        pacer: RequestPacer,
        catalog: InstrumentCatalog,
        fallback_table: StaticFallbackTable | None = None,
        providers: dict[str, Any] | None = None,
        session: Optional[Any] = None,
        quote_timeout_sec: float = 10.0,
        history_timeout_sec: float = 15.0,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self.relay_pool = relay_pool
        self.cache = cache
        self.deduplicator = deduplicator
        self.pacer = pacer
        self.catalog = catalog
        self.fallback_table = fallback_table or StaticFallbackTable()
        self.providers = providers or {"metals": MetalsProvider(), "chart": ChartProvider()}
        self.session = session or requests.Session()
        self.quote_timeout_sec = quote_timeout_sec
        self.history_timeout_sec = history_timeout_sec
        self.clock = clock
        self.rng = rng or random.Random()
        self.request_hooks: list[Callable[[str, dict[str, str]], tuple[str, dict[str, str]]]] = []
        self.response_hooks: list[Callable[[Any], Any]] = []

        self.quote_strategies: list[tuple[str, Callable[[Instrument, Any, str], Quote | None]]] = [
            ("live", self._live_quote),
            ("static", self._static_quote),
            ("simulated", self._simulated_quote),
        ]
        self.counters = {
            "live": 0,
            "cached": 0,
            "static": 0,
            "simulated": 0,
            "requests": 0,
            "request_failures": 0,
        }

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    def _inc(self, key: str) -> None:
        self.counters[key] = self.counters.get(key, 0) + 1

    def add_request_hook(self, hook: Callable[[str, dict[str, str]], tuple[str, dict[str, str]]]) -> None:
        """Register ``hook(url, headers) -> (url, headers)``, run before every outbound request."""
        self.request_hooks.append(hook)

    def add_response_hook(self, hook: Callable[[Any], Any]) -> None:
        """Register ``hook(payload) -> payload``, run on every decoded upstream body."""
        self.response_hooks.append(hook)

    def _resolve_instrument(self, instrument: Instrument | str) -> Instrument:
        if isinstance(instrument, Instrument):
            return self.catalog.get(instrument.symbol)
        return self.catalog.get(instrument)

    # -- transport -----------------------------------------------------

    def _request_once(self, endpoint: RelayEndpoint | None, target_url: str, timeout: float) -> Any:
        self.pacer.wait_turn()
        self._inc("requests")
        url = target_url if endpoint is None else RelayPool.wrap(endpoint, target_url)
        headers = {"Accept": "application/json"}
        for hook in self.request_hooks:
            url, headers = hook(url, headers)
        try:
            response = self.session.get(url, headers=headers, timeout=timeout)
        except requests.Timeout as exc:
            raise FetchTimeoutError(f"timeout after {timeout}s") from exc
        except requests.RequestException as exc:
            raise RelayUnreachableError(str(exc)) from exc

        status = response.status_code
        if not 200 <= status < 300:
            raise RelayUnreachableError(f"HTTP {status}")

        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedPayloadError("response body is not JSON") from exc

        if endpoint is None or endpoint.shape == "raw":
            return self._apply_response_hooks(body)

        # enveloped: the upstream body arrives as a JSON string in "contents"
        contents = body.get("contents") if isinstance(body, dict) else None
        if not isinstance(contents, str) or not contents:
            raise MalformedPayloadError("relay envelope missing contents")
        try:
            payload = json.loads(contents)
        except ValueError as exc:
            raise MalformedPayloadError("relay envelope contents are not JSON") from exc
        return self._apply_response_hooks(payload)

    def _apply_response_hooks(self, payload: Any) -> Any:
        for hook in self.response_hooks:
            payload = hook(payload)
        return payload

    def _request_with_failover(
        self,
        target_url: str,
        provider: Any,
        timeout: float,
        parse: Callable[[Any], Any],
    ) -> Any:
        last_error: QuoteFetchError | None = None
        for attempt in range(len(self.relay_pool)):
            endpoint = self.relay_pool.current_endpoint()
            try:
                payload = self._request_once(endpoint, target_url, timeout)
                provider.check_shape(payload)
                result = parse(payload)
            except QuoteFetchError as exc:
                last_error = exc
                self._inc("request_failures")
                print(
                    f"[QUOTE][relay_attempt_failed] relay={endpoint.name} attempt={attempt + 1} "
                    f"error={exc.code} detail={exc}",
                    flush=True,
                )
                self.relay_pool.record_failure(endpoint)
                continue
            self.relay_pool.record_success(endpoint)
            return result
        raise last_error or RelayUnreachableError("no relay attempted")

    def probe(self, target_url: str, provider: Any, *, via_relay: bool, timeout: float) -> bool:
        """Single request used by health checks. Bypasses cache and relay bookkeeping."""
        endpoint = self.relay_pool.current_endpoint() if via_relay else None
        try:
            payload = self._request_once(endpoint, target_url, timeout)
            provider.check_shape(payload)
        except QuoteFetchError as exc:
            print(f"[HEALTH][probe_failed] via_relay={via_relay} error={exc.code} detail={exc}", flush=True)
            return False
        return True

    # -- quotes ----------------------------------------------------------

    def _cached_quote(self, key: str) -> Quote | None:
        value = self.cache.get(key)
        if value is ResponseCache.MISS:
            return None
        try:
            return Quote.model_validate({**value, "provenance": "cached"})
        except (TypeError, ValueError):
            # unreadable entry left over from an older shape
            self.cache.clear(key)
            return None

    def fetch(self, instrument: Instrument | str) -> Quote:
        instrument = self._resolve_instrument(instrument)
        provider = self.providers[instrument.provider]
        key = provider.cache_key(instrument)

        cached = self._cached_quote(key)
        if cached is not None:
            self._inc("cached")
            return cached

        url = provider.quote_url(instrument)
        return self.deduplicator.run(f"quote:{key}", lambda: self._resolve_quote(instrument, provider, key, url))

    def _resolve_quote(self, instrument: Instrument, provider: Any, key: str, url: str) -> Quote:
        # another caller may have filled the cache between our check and the ticket
        cached = self._cached_quote(key)
        if cached is not None:
            self._inc("cached")
            return cached

        for name, strategy in self.quote_strategies:
            quote = strategy(instrument, provider, url)
            if quote is not None:
                self._inc(name)
                if name != "live":
                    print(f"[QUOTE][degraded] symbol={instrument.symbol} provenance={quote.provenance}", flush=True)
                return quote
        raise RuntimeError(f"fallback chain produced no quote for {instrument.symbol}")

    def _live_quote(self, instrument: Instrument, provider: Any, url: str) -> Quote | None:
        try:
            quote = self._request_with_failover(
                url,
                provider,
                self.quote_timeout_sec,
                lambda payload: normalize_quote(provider.shape, payload, instrument, self._now()),
            )
        except QuoteFetchError as exc:
            print(f"[QUOTE][live_exhausted] symbol={instrument.symbol} error={exc.code}", flush=True)
            return None
        self.cache.set(provider.cache_key(instrument), quote.model_dump(mode="json"), provider.ttl_sec)
        return quote

    def _static_quote(self, instrument: Instrument, provider: Any = None, url: str = "") -> Quote | None:
        row = self.fallback_table.get(instrument.symbol)
        if row is None:
            return None
        return Quote(
            symbol=instrument.symbol,
            name=instrument.name,
            price=row.price,
            previous_close=row.previous_close,
            open=row.previous_close,
            day_high=row.price * 1.02,
            day_low=row.price * 0.98,
            volume=None,
            currency=instrument.currency,
            observed_at=self._now(),
            provenance="static",
        )

    def _simulated_quote(self, instrument: Instrument, provider: Any = None, url: str = "") -> Quote:
        seed = self.fallback_table.seed_price(instrument.symbol)
        if seed is None or not math.isfinite(seed) or seed <= 0:
            seed = 100 + self.rng.random() * 200

        price = seed
        for _ in range(20):
            price *= 1 + self.rng.uniform(-0.005, 0.005)
        price = min(max(price, seed * 0.95), seed * 1.05)

        return Quote(
            symbol=instrument.symbol,
            name=instrument.name,
            price=price,
            previous_close=seed,
            open=seed,
            day_high=price * 1.02,
            day_low=price * 0.98,
            volume=float(self.rng.randint(0, 10_000_000)),
            currency=instrument.currency,
            observed_at=self._now(),
            provenance="simulated",
        )

    def fallback_quote(self, instrument: Instrument | str) -> Quote:
        """Static row if bundled, otherwise simulated. Never touches the network."""
        instrument = self._resolve_instrument(instrument)
        quote = self._static_quote(instrument) or self._simulated_quote(instrument)
        self._inc(quote.provenance)
        return quote

    # -- history -------------------------------------------------------

    def fetch_history(self, instrument: Instrument | str, interval: str = "1h", range_: str = "5d") -> HistorySeries:
        instrument = self._resolve_instrument(instrument)
        chart = self.providers["chart"]
        upstream = _HISTORY_UPSTREAM.get(instrument.provider)
        source = instrument.model_copy(update={"upstream_symbol": upstream}) if upstream else instrument
        key = chart.history_cache_key(instrument, interval, range_)

        cached = self._cached_history(instrument, interval, range_, key)
        if cached is not None:
            return cached

        url = chart.history_url(source, interval, range_)
        return self.deduplicator.run(
            f"history:{key}",
            lambda: self._resolve_history(instrument, chart, interval, range_, key, url),
        )

    def _cached_history(self, instrument: Instrument, interval: str, range_: str, key: str) -> HistorySeries | None:
        value = self.cache.get(key)
        if value is ResponseCache.MISS:
            return None
        return HistorySeries(
            symbol=instrument.symbol,
            interval=interval,
            range=range_,
            points=[HistoryPoint.model_validate(p) for p in value],
            provenance="cached",
        )

    def _resolve_history(
        self, instrument: Instrument, chart: Any, interval: str, range_: str, key: str, url: str
    ) -> HistorySeries:
        cached = self._cached_history(instrument, interval, range_, key)
        if cached is not None:
            return cached

        def _parse(payload: Any) -> list[HistoryPoint]:
            points = normalize_history(payload)
            if not points:
                raise ProviderReportedError("history series is empty")
            return points

        try:
            points = self._request_with_failover(url, chart, self.history_timeout_sec, _parse)
        except QuoteFetchError as exc:
            print(f"[QUOTE][history_degraded] symbol={instrument.symbol} error={exc.code}", flush=True)
            return HistorySeries(
                symbol=instrument.symbol,
                interval=interval,
                range=range_,
                points=self._simulated_history(instrument),
                provenance="simulated",
            )

        self.cache.set(key, [p.model_dump(mode="json") for p in points], chart.history_ttl_sec)
        return HistorySeries(
            symbol=instrument.symbol, interval=interval, range=range_, points=points, provenance="live"
        )

    def _simulated_history(self, instrument: Instrument, hours: int = 24) -> list[HistoryPoint]:
        base = self.fallback_table.seed_price(instrument.symbol)
        provider = self.providers[instrument.provider]
        cached = self._cached_quote(provider.cache_key(instrument))
        if cached is not None:
            base = cached.price
        if base is None:
            base = 100 + self.rng.random() * 200

        now = self._now()
        steps = hours * 2
        points = []
        for i in range(steps, -1, -1):
            wobble = self.rng.uniform(-0.004, 0.004)
            trend = math.sin(i / 10) * 0.003 * (i / steps)
            points.append(
                HistoryPoint(time=now - timedelta(minutes=30 * i), price=base * (1 + wobble + trend))
            )
        return points

    def metrics(self) -> dict[str, int]:
        return {f"quotes_{k}": v for k, v in self.counters.items()}
