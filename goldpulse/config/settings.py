import os
from functools import lru_cache

from pydantic import BaseModel

from goldpulse.schemas.relay import RelayEndpoint

_DEFAULT_RELAYS = (
    "enveloped|https://api.allorigins.win/get?url={url}",
    "raw|https://api.codetabs.com/v1/proxy?quest={url}",
    "raw|https://corsproxy.io/?{url}",
    "raw|https://api.allorigins.win/raw?url={url}",
)


def parse_relays(raw: str) -> list[RelayEndpoint]:
    """Parse ``shape|template`` pairs separated by commas."""
    out: list[RelayEndpoint] = []
    for index, item in enumerate(s.strip() for s in raw.split(",")):
        if not item:
            continue
        shape, sep, template = item.partition("|")
        if not sep:
            shape, template = "raw", item
        out.append(
            RelayEndpoint(
                name=f"relay-{index}",
                url_template=template.strip(),
                shape=shape.strip().lower(),
            )
        )
    return out


class Settings(BaseModel):
    RELAYS: list[RelayEndpoint]
    REQUEST_INTERVAL_SEC: float = 0.1
    QUOTE_TIMEOUT_SEC: float = 10.0
    HISTORY_TIMEOUT_SEC: float = 15.0
    HEALTH_TIMEOUT_SEC: float = 5.0
    QUOTE_CACHE_TTL_SEC: float = 60.0
    HISTORY_CACHE_TTL_SEC: float = 300.0
    CACHE_MAX_STORAGE_BYTES: int = 5 * 1024 * 1024
    SESSION_STORAGE_PATH: str | None = None
    BATCH_WORKERS: int = 1

    @classmethod
    def from_env(cls) -> "Settings":
        relays = parse_relays(os.getenv("GOLDPULSE_RELAYS", ",".join(_DEFAULT_RELAYS)))
        if not relays:
            relays = parse_relays(",".join(_DEFAULT_RELAYS))

        raw = {
            "RELAYS": relays,
            "REQUEST_INTERVAL_SEC": os.getenv("GOLDPULSE_REQUEST_INTERVAL_SEC"),
            "QUOTE_TIMEOUT_SEC": os.getenv("GOLDPULSE_QUOTE_TIMEOUT_SEC"),
            "HISTORY_TIMEOUT_SEC": os.getenv("GOLDPULSE_HISTORY_TIMEOUT_SEC"),
            "HEALTH_TIMEOUT_SEC": os.getenv("GOLDPULSE_HEALTH_TIMEOUT_SEC"),
            "QUOTE_CACHE_TTL_SEC": os.getenv("GOLDPULSE_QUOTE_CACHE_TTL_SEC"),
            "HISTORY_CACHE_TTL_SEC": os.getenv("GOLDPULSE_HISTORY_CACHE_TTL_SEC"),
            "CACHE_MAX_STORAGE_BYTES": os.getenv("GOLDPULSE_CACHE_MAX_STORAGE_BYTES"),
            "SESSION_STORAGE_PATH": os.getenv("GOLDPULSE_SESSION_STORAGE_PATH"),
            "BATCH_WORKERS": os.getenv("GOLDPULSE_BATCH_WORKERS"),
        }
        # unset env vars fall back to field defaults
        return cls.model_validate({k: v for k, v in raw.items() if v is not None})


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
