import copy
import json
import random
import threading

from goldpulse.schemas.relay import RelayEndpoint
from goldpulse.services.catalog import InstrumentCatalog
from goldpulse.services.fallback_table import StaticFallbackTable
from goldpulse.services.inflight import InFlightDeduplicator
from goldpulse.services.pacing import RequestPacer
from goldpulse.services.quote_fetcher import QuoteFetcher
from goldpulse.services.relay_pool import RelayPool
from goldpulse.services.response_cache import ResponseCache



def make_relays(*shapes):
    shapes = shapes or ("raw", "raw")
    return [
        RelayEndpoint(name=f"relay-{i}", url_template=f"https://relay-{i}.test/?u={{url}}", shape=shape)
        for i, shape in enumerate(shapes)
    ]


class FakeResponse:
    def __init__(self, body=None, status_code=200, invalid_json=False):
        self.body = body
        self.status_code = status_code
        self.invalid_json = invalid_json

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value")
        return copy.deepcopy(self.body)


class ScriptedSession:
    """requests.Session stand-in; ``handler(url)`` returns a response or an exception."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self._lock = threading.Lock()

    def get(self, url, headers=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        result = self.handler(url)
        if isinstance(result, BaseException):
            raise result
        return result


def chart_payload(price=100.0, previous_close=98.0, high=None, low=None, volume=None, error=None):
    meta = {"regularMarketPrice": price, "chartPreviousClose": previous_close, "currency": "USD"}
    if high is not None:
        meta["regularMarketDayHigh"] = high
    if low is not None:
        meta["regularMarketDayLow"] = low
    if volume is not None:
        meta["regularMarketVolume"] = volume
    if error is not None:
        return {"chart": {"result": None, "error": {"code": "Not Found", "description": error}}}
    return {
        "chart": {
            "result": [
                {
                    "meta": meta,
                    "timestamp": [1700000000, 1700001800],
                    "indicators": {"quote": [{"open": [previous_close + 0.5], "close": [price - 1, price]}]},
                }
            ],
            "error": None,
        }
    }


def metals_payload(price=2650.5, change=12.0, close=2638.5, change_pct=0.45):
    row = {"curr": "USD", "xauPrice": price, "chgXau": change, "pcXau": change_pct}
    if close is not None:
        row["xauClose"] = close
    return {"ts": 1700000000000, "items": [row]}


def envelope(payload):
    return {"contents": json.dumps(payload), "status": {"http_code": 200}}


class FakeClock:
    def __init__(self, now=1700000000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_fetcher(session, *, relays=None, clock=None, catalog=None, fallback_table=None, seed=7, storage=None):
    clock = clock or FakeClock()
    cache = ResponseCache(storage, clock=clock)
    return QuoteFetcher(
        relay_pool=RelayPool(relays or make_relays()),
        cache=cache,
        deduplicator=InFlightDeduplicator(),
        pacer=RequestPacer(0.0),
        catalog=catalog or InstrumentCatalog(),
        fallback_table=fallback_table or StaticFallbackTable(),
        session=session,
        clock=clock,
        rng=random.Random(seed),
    )
