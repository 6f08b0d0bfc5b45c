from fastapi import APIRouter, HTTPException, Query, Request

from goldpulse.errors import UnsupportedInstrumentError

router = APIRouter()

_MAX_BATCH_SYMBOLS = 100


def _service(request: Request):
    return request.app.state.quote_service


@router.get('/catalog')
def get_catalog(request: Request):
    catalog = _service(request).fetcher.catalog
    return [i.model_dump() for i in catalog.list_all()]


@router.get('/quotes/{symbol}')
def get_quote(symbol: str, request: Request):
    try:
        quote = _service(request).fetch(symbol)
    except UnsupportedInstrumentError as exc:
        raise HTTPException(status_code=404, detail=exc.code) from exc
    return quote.model_dump(mode='json')


@router.get('/quotes')
def get_quotes(symbols: str, request: Request):
    req = [s.strip() for s in symbols.split(',') if s.strip()]
    if not req:
        raise HTTPException(status_code=400, detail='SYMBOLS_REQUIRED')
    if len(req) > _MAX_BATCH_SYMBOLS:
        raise HTTPException(status_code=400, detail='TOO_MANY_SYMBOLS')
    try:
        quotes = _service(request).fetch_many(req)
    except UnsupportedInstrumentError as exc:
        raise HTTPException(status_code=404, detail=exc.code) from exc
    return [q.model_dump(mode='json') for q in quotes.values()]


@router.get('/categories')
def get_categories(request: Request):
    grouped = _service(request).fetch_all_categories()
    return {
        key: {
            'name': category['name'],
            'instruments': category['instruments'],
            'quotes': {s: q.model_dump(mode='json') for s, q in category['quotes'].items()},
        }
        for key, category in grouped.items()
    }


@router.get('/history/{symbol}')
def get_history(
    symbol: str,
    request: Request,
    interval: str = '1h',
    range_: str = Query('5d', alias='range'),
):
    try:
        series = _service(request).fetch_history(symbol, interval, range_)
    except UnsupportedInstrumentError as exc:
        raise HTTPException(status_code=404, detail=exc.code) from exc
    return series.model_dump(mode='json')


@router.delete('/cache')
def clear_cache(request: Request, pattern: str | None = None):
    removed = _service(request).clear_cache(pattern)
    return {'removed': removed, 'pattern': pattern}


@router.get('/health')
def health(request: Request):
    return _service(request).health_check().model_dump(mode='json')


@router.get('/metrics/quote')
def quote_metrics(request: Request):
    return _service(request).metrics()
