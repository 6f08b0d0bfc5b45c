from __future__ import annotations


class QuoteFetchError(Exception):
    """Transient failure on the live path. Absorbed by the fallback chain."""

    code = "QUOTE_FETCH_ERROR"


class RelayUnreachableError(QuoteFetchError):
    code = "RELAY_UNREACHABLE"


class FetchTimeoutError(QuoteFetchError):
    code = "TIMEOUT"


class MalformedPayloadError(QuoteFetchError):
    code = "MALFORMED_PAYLOAD"


class ProviderReportedError(QuoteFetchError):
    code = "PROVIDER_REPORTED_ERROR"


class UnsupportedInstrumentError(LookupError):
    code = "UNSUPPORTED_INSTRUMENT"

    def __init__(self, symbol: str) -> None:
        super().__init__(f"{self.code}: {symbol}")
        self.symbol = symbol
