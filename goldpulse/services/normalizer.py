from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from goldpulse.errors import MalformedPayloadError
from goldpulse.schemas.quote import HistoryPoint, Instrument, Quote


def _to_float(value: Any, *, field_name: str) -> float:
    try:
        if value is None or value == "" or isinstance(value, bool):
            raise ValueError(f"missing value for {field_name}")
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedPayloadError(f"invalid numeric value for {field_name}: {value!r}") from exc
    if not math.isfinite(number):
        raise MalformedPayloadError(f"non-finite value for {field_name}: {value!r}")
    return number


def _to_float_default(value: Any, default: float | None = None) -> float | None:
    try:
        if value is None or value == "" or isinstance(value, bool):
            return default
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _to_utc(value: Any) -> datetime | None:
    seconds = _to_float_default(value)
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(int(seconds), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def normalize_metals(payload: Dict[str, Any], instrument: Instrument, observed_at: datetime) -> Quote:
    """goldprice.org ``items[0]`` -> Quote. High/low are estimated from the daily change."""
    items = payload.get("items") if isinstance(payload, dict) else None
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        raise MalformedPayloadError("metals payload has no items")
    row = items[0]

    price = _to_float(row.get("xauPrice"), field_name="xauPrice")
    change = _to_float_default(row.get("chgXau"), 0.0)
    previous_close = _to_float_default(row.get("xauClose"))
    if not previous_close:
        previous_close = price - change
    spread = abs(change) * 0.5

    return Quote(
        symbol=instrument.symbol,
        name=instrument.name,
        price=price,
        previous_close=previous_close,
        open=previous_close,
        day_high=price + spread,
        day_low=price - spread,
        volume=None,
        currency=instrument.currency,
        observed_at=observed_at,
        provenance="live",
    )


def _chart_result(payload: Dict[str, Any]) -> Dict[str, Any]:
    chart = payload.get("chart") if isinstance(payload, dict) else None
    result = chart.get("result") if isinstance(chart, dict) else None
    if not isinstance(result, list) or not result or not isinstance(result[0], dict):
        raise MalformedPayloadError("chart payload has no result")
    return result[0]


def _first_quote_block(result: Dict[str, Any]) -> Dict[str, Any]:
    indicators = result.get("indicators")
    blocks = indicators.get("quote") if isinstance(indicators, dict) else None
    if isinstance(blocks, list) and blocks and isinstance(blocks[0], dict):
        return blocks[0]
    return {}


def normalize_chart(payload: Dict[str, Any], instrument: Instrument, observed_at: datetime) -> Quote:
    result = _chart_result(payload)
    meta = result.get("meta")
    if not isinstance(meta, dict):
        raise MalformedPayloadError("chart result has no meta")

    price = _to_float(meta.get("regularMarketPrice"), field_name="regularMarketPrice")
    previous_close = _to_float_default(meta.get("chartPreviousClose"))
    if previous_close is None:
        previous_close = _to_float(meta.get("previousClose"), field_name="chartPreviousClose")

    opens = _first_quote_block(result).get("open")
    first_open = _to_float_default(opens[0]) if isinstance(opens, list) and opens else None

    return Quote(
        symbol=instrument.symbol,
        name=instrument.name,
        price=price,
        previous_close=previous_close,
        open=first_open or previous_close,
        day_high=_to_float_default(meta.get("regularMarketDayHigh")) or price,
        day_low=_to_float_default(meta.get("regularMarketDayLow")) or price,
        volume=_to_float_default(meta.get("regularMarketVolume")),
        currency=str(meta.get("currency") or instrument.currency),
        observed_at=observed_at,
        provenance="live",
    )


NORMALIZERS: dict[str, Callable[[Dict[str, Any], Instrument, datetime], Quote]] = {
    "metals": normalize_metals,
    "chart": normalize_chart,
}


def normalize_quote(shape: str, payload: Dict[str, Any], instrument: Instrument, observed_at: datetime) -> Quote:
    try:
        normalizer = NORMALIZERS[shape]
    except KeyError as exc:
        raise ValueError(f"no normalizer for provider shape {shape!r}") from exc
    return normalizer(payload, instrument, observed_at)


def normalize_history(payload: Dict[str, Any]) -> list[HistoryPoint]:
    """Pair chart timestamps with closes, dropping points with a null close or an unreadable timestamp."""
    result = _chart_result(payload)
    timestamps = result.get("timestamp") or []
    closes = _first_quote_block(result).get("close") or []
    if not isinstance(timestamps, list) or not isinstance(closes, list):
        raise MalformedPayloadError("chart history arrays are not lists")

    points: list[HistoryPoint] = []
    for ts, close in zip(timestamps, closes):
        price = _to_float_default(close)
        observed = _to_utc(ts)
        if price is None or observed is None:
            continue
        points.append(HistoryPoint(time=observed, price=price))
    return points
