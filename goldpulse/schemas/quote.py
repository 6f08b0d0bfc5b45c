from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, computed_field

Provenance = Literal["live", "cached", "static", "simulated"]
AssetClass = Literal["metal", "equity", "etf", "index", "future"]
ProviderName = Literal["metals", "chart"]


class Instrument(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    asset_class: AssetClass
    currency: str
    provider: ProviderName
    category: str
    upstream_symbol: str


class Quote(BaseModel):
    symbol: str
    name: str | None = None
    price: float
    previous_close: float
    open: float | None = None
    day_high: float
    day_low: float
    volume: float | None = None
    currency: str
    observed_at: datetime
    provenance: Provenance

    @computed_field
    @property
    def change(self) -> float:
        return self.price - self.previous_close

    @computed_field
    @property
    def change_percent(self) -> float:
        if self.previous_close == 0:
            return 0.0
        return self.change / self.previous_close * 100


class HistoryPoint(BaseModel):
    time: datetime
    price: float


class HistorySeries(BaseModel):
    symbol: str
    interval: str
    range: str
    points: list[HistoryPoint]
    provenance: Provenance


class HealthStatus(BaseModel):
    provider_ok: bool
    relay_ok: bool
    checked_at: datetime
