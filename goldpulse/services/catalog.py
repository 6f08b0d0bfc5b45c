from __future__ import annotations

from goldpulse.errors import UnsupportedInstrumentError
from goldpulse.schemas.quote import Instrument

CATEGORY_NAMES = {
    "metals": "Precious metals",
    "indices": "Regional indices",
    "tech": "US tech stocks",
    "etf": "ETFs and indices",
    "other": "Other",
}


def _metal(symbol: str, name: str, currency: str) -> Instrument:
    return Instrument(
        symbol=symbol,
        name=name,
        asset_class="metal",
        currency=currency,
        provider="metals",
        category="metals",
        upstream_symbol=currency,
    )


def _chart(symbol: str, name: str, asset_class: str, category: str, currency: str = "USD") -> Instrument:
    return Instrument(
        symbol=symbol,
        name=name,
        asset_class=asset_class,
        currency=currency,
        provider="chart",
        category=category,
        upstream_symbol=symbol,
    )


DEFAULT_INSTRUMENTS: tuple[Instrument, ...] = (
    _metal("XAU-USD", "Gold spot (USD)", "USD"),
    _metal("XAU-CNY", "Gold spot (CNY)", "CNY"),
    _chart("^HSI", "Hang Seng Index", "index", "indices", "HKD"),
    _chart("000001.SS", "SSE Composite Index", "index", "indices", "CNY"),
    _chart("QQQ", "Invesco QQQ Trust", "etf", "tech"),
    _chart("TEM", "Tempus AI", "equity", "tech"),
    _chart("CRDO", "Credo Technology", "equity", "tech"),
    _chart("COIN", "Coinbase", "equity", "tech"),
    _chart("PLTR", "Palantir", "equity", "tech"),
    _chart("CRWV", "CoreWeave", "equity", "tech"),
    _chart("TSM", "Taiwan Semiconductor", "equity", "tech"),
    _chart("ORCL", "Oracle", "equity", "tech"),
    _chart("FIG", "Figma Inc", "equity", "tech"),
    _chart("MELI", "MercadoLibre", "equity", "tech"),
    _chart("RBLX", "Roblox", "equity", "tech"),
    _chart("COUR", "Coursera", "equity", "tech"),
    _chart("SPOT", "Spotify Technology", "equity", "tech"),
    _chart("NFLX", "Netflix", "equity", "tech"),
    _chart("DUOL", "Duolingo", "equity", "tech"),
    _chart("NIO", "NIO", "equity", "tech"),
    _chart("LI", "Li Auto", "equity", "tech"),
    _chart("NVDA", "NVIDIA", "equity", "tech"),
    _chart("PYPL", "PayPal", "equity", "tech"),
    _chart("DIS", "Walt Disney", "equity", "tech"),
    _chart("AMD", "Advanced Micro Devices", "equity", "tech"),
    _chart("INTC", "Intel", "equity", "tech"),
    _chart("FUTU", "Futu Holdings", "equity", "tech"),
    _chart("AAPL", "Apple", "equity", "tech"),
    _chart("BABA", "Alibaba", "equity", "tech"),
    _chart("PDD", "PDD Holdings", "equity", "tech"),
    _chart("VOO", "Vanguard S&P 500 ETF", "etf", "etf"),
    _chart("AVGO", "Broadcom", "equity", "etf"),
    _chart("^VIX", "CBOE Volatility Index", "index", "etf"),
    _chart("PSQ", "ProShares Short QQQ", "etf", "etf"),
    _chart("SH", "ProShares Short S&P500", "etf", "etf"),
    _chart("SPY", "SPDR S&P 500 ETF", "etf", "etf"),
    _chart("IVV", "iShares Core S&P 500 ETF", "etf", "etf"),
    _chart("^GSPC", "S&P 500 Index", "index", "etf"),
    _chart("VXX", "iPath S&P 500 VIX Short-Term Futures", "etf", "etf"),
    _chart("QID", "ProShares UltraShort QQQ", "etf", "etf"),
    _chart("SQQQ", "ProShares UltraPro Short QQQ", "etf", "etf"),
    _chart("^IXIC", "NASDAQ Composite Index", "index", "etf"),
    _chart("CL=F", "WTI Crude Oil Futures", "future", "other"),
    _chart("NOC", "Northrop Grumman", "equity", "other"),
    _chart("LMT", "Lockheed Martin", "equity", "other"),
    _chart("OXY", "Occidental Petroleum", "equity", "other"),
    _chart("SLMT", "Brera Holdings", "equity", "other"),
    _chart("NTDOY", "Nintendo (ADR)", "equity", "other"),
    _chart("DJT", "Trump Media & Technology Group", "equity", "other"),
    _chart("SE", "Sea Ltd", "equity", "other"),
)


class InstrumentCatalog:
    """Read-only instrument reference data keyed by symbol."""

    def __init__(self, instruments: tuple[Instrument, ...] | list[Instrument] = DEFAULT_INSTRUMENTS) -> None:
        self._by_symbol: dict[str, Instrument] = {}
        for instrument in instruments:
            if instrument.symbol in self._by_symbol:
                raise ValueError(f"duplicate instrument symbol: {instrument.symbol}")
            self._by_symbol[instrument.symbol] = instrument

    def get(self, symbol: str) -> Instrument:
        instrument = self._by_symbol.get(str(symbol).strip())
        if instrument is None:
            raise UnsupportedInstrumentError(symbol)
        return instrument

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._by_symbol

    def symbols(self) -> list[str]:
        return list(self._by_symbol)

    def list_all(self) -> list[Instrument]:
        return list(self._by_symbol.values())

    def categories(self) -> dict[str, list[Instrument]]:
        out: dict[str, list[Instrument]] = {key: [] for key in CATEGORY_NAMES}
        for instrument in self._by_symbol.values():
            out.setdefault(instrument.category, []).append(instrument)
        return out
