from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI

from goldpulse.api.routes import router
from goldpulse.config.settings import Settings, get_settings
from goldpulse.integrations.providers import ChartProvider, MetalsProvider
from goldpulse.integrations.session_storage import JsonFileSessionStorage, MemorySessionStorage
from goldpulse.integrations.ui_store import InMemoryUiStore
from goldpulse.services.batch import BatchOrchestrator
from goldpulse.services.catalog import InstrumentCatalog
from goldpulse.services.fallback_table import StaticFallbackTable
from goldpulse.services.inflight import InFlightDeduplicator
from goldpulse.services.pacing import RequestPacer
from goldpulse.services.quote_fetcher import QuoteFetcher
from goldpulse.services.quote_service import QuoteService
from goldpulse.services.relay_pool import RelayPool
from goldpulse.services.response_cache import ResponseCache


def build_quote_service(
    settings: Settings,
    *,
    session: Optional[Any] = None,
    storage: Optional[Any] = None,
    store: Optional[Any] = None,
) -> QuoteService:
    """Construct the session-lifetime services once and wire them together."""
    if storage is None:
        if settings.SESSION_STORAGE_PATH:
            storage = JsonFileSessionStorage(settings.SESSION_STORAGE_PATH)
        else:
            storage = MemorySessionStorage()

    cache = ResponseCache(
        storage,
        default_ttl_sec=settings.QUOTE_CACHE_TTL_SEC,
        max_storage_bytes=settings.CACHE_MAX_STORAGE_BYTES,
    )
    fetcher = QuoteFetcher(
        relay_pool=RelayPool(settings.RELAYS),
        cache=cache,
        deduplicator=InFlightDeduplicator(),
        pacer=RequestPacer(settings.REQUEST_INTERVAL_SEC),
        catalog=InstrumentCatalog(),
        fallback_table=StaticFallbackTable(),
        providers={
            "metals": MetalsProvider(ttl_sec=settings.QUOTE_CACHE_TTL_SEC),
            "chart": ChartProvider(
                ttl_sec=settings.QUOTE_CACHE_TTL_SEC,
                history_ttl_sec=settings.HISTORY_CACHE_TTL_SEC,
            ),
        },
        session=session,
        quote_timeout_sec=settings.QUOTE_TIMEOUT_SEC,
        history_timeout_sec=settings.HISTORY_TIMEOUT_SEC,
    )
    return QuoteService(
        fetcher=fetcher,
        batch=BatchOrchestrator(fetcher, max_workers=settings.BATCH_WORKERS),
        store=store if store is not None else InMemoryUiStore(),
        health_timeout_sec=settings.HEALTH_TIMEOUT_SEC,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    relays = app.state.quote_service.fetcher.relay_pool.snapshot()
    print(f"[APP][startup] relays={','.join(r.name for r in relays)}", flush=True)
    try:
        yield
    finally:
        print("[APP][shutdown]", flush=True)


app = FastAPI(title="GoldPulse Quote Gateway", version="0.1.0", lifespan=lifespan)
app.include_router(router, prefix="/v1")

app.state.get_settings = get_settings
app.state.quote_service = build_quote_service(get_settings())
