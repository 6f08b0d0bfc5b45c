from __future__ import annotations

from typing import Any
from urllib.parse import quote, urlencode

from goldpulse.errors import MalformedPayloadError, ProviderReportedError
from goldpulse.schemas.quote import Instrument


class MetalsProvider:
    """goldprice.org spot feed. One URL per quote currency, payload ``{"items": [...]}``."""

    name = "metals"
    shape = "metals"

    def __init__(self, base_url: str = "https://data-asg.goldprice.org/dbXRates", ttl_sec: float = 60.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.ttl_sec = ttl_sec

    def quote_url(self, instrument: Instrument) -> str:
        return f"{self.base_url}/{quote(instrument.upstream_symbol, safe='')}"

    def cache_key(self, instrument: Instrument) -> str:
        return f"{self.name}:{instrument.symbol}:{instrument.upstream_symbol.lower()}"

    def check_shape(self, payload: Any) -> None:
        if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
            raise MalformedPayloadError("metals payload missing items")
        if not payload["items"]:
            raise ProviderReportedError("metals provider returned no items")


class ChartProvider:
    """Yahoo Finance v8 chart API, used for equities, ETFs, indices, futures and history."""

    name = "chart"
    shape = "chart"

    def __init__(
        self,
        base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart",
        ttl_sec: float = 60.0,
        history_ttl_sec: float = 300.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.ttl_sec = ttl_sec
        self.history_ttl_sec = history_ttl_sec

    def _url(self, upstream_symbol: str, interval: str, range_: str) -> str:
        query = urlencode({"interval": interval, "range": range_})
        return f"{self.base_url}/{quote(upstream_symbol, safe='')}?{query}"

    def quote_url(self, instrument: Instrument) -> str:
        return self._url(instrument.upstream_symbol, "1d", "1d")

    def history_url(self, instrument: Instrument, interval: str, range_: str) -> str:
        return self._url(instrument.upstream_symbol, interval, range_)

    def cache_key(self, instrument: Instrument) -> str:
        return f"{self.name}:{instrument.symbol}:1d:1d"

    def history_cache_key(self, instrument: Instrument, interval: str, range_: str) -> str:
        return f"{self.name}:history:{instrument.symbol}:{interval}:{range_}"

    def check_shape(self, payload: Any) -> None:
        chart = payload.get("chart") if isinstance(payload, dict) else None
        if not isinstance(chart, dict):
            raise MalformedPayloadError("chart payload missing chart")
        error = chart.get("error")
        if error:
            description = error.get("description") if isinstance(error, dict) else error
            raise ProviderReportedError(str(description or "provider error"))
        result = chart.get("result")
        if not isinstance(result, list) or not result:
            raise ProviderReportedError("No data available")
