"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import StrEnum
from pathlib import Path

import httpx
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# --- Type Aliases ---

Ticker = str
Continuation = str

# Query parameters that carry credentials and must never be logged
SECRET_PARAMS = frozenset({"apiKey", "apikey", "api_key"})

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# --- Enumerations ---


class Granularity(StrEnum):
    """Bar size requested from the provider."""

    MINUTE = "minute"
    DAY = "day"


class OutputFormat(StrEnum):
    """On-disk output formats."""

    CSV = "csv"
    JSON = "json"


class Provider(StrEnum):
    """Supported market-data providers."""

    POLYGON = "polygon"
    TWELVEDATA = "twelvedata"


# --- Bar ---


class Bar(BaseModel):
    """A single OHLCV bar: the canonical, provider-independent record.

    ``timestamp`` is the bucket start in epoch milliseconds (UTC). ``volume``
    is optional because index-type instruments report none. ``vwap`` and
    ``trade_count`` are pass-through fields only some providers supply.
    NaN and infinity are rejected so every bar serializes to standard JSON.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float | None = None
    vwap: float | None = None
    trade_count: int | None = None

    @property
    def utc_datetime(self) -> datetime | None:
        """The bar's UTC instant, or None if the timestamp is out of range."""
        try:
            return _EPOCH + timedelta(milliseconds=self.timestamp)
        except OverflowError:
            return None


# --- Requests and pages ---


class PageRequest(BaseModel):
    """A fully-formed outbound GET request.

    Provider-specific but opaque to the paginator: it only ever fetches
    ``url``. Adapters build and rebuild these.
    """

    model_config = ConfigDict(frozen=True)

    url: str

    @property
    def redacted_url(self) -> str:
        """The URL with API-key parameters masked, safe for logs and errors."""
        url = httpx.URL(self.url)
        for key in SECRET_PARAMS:
            if key in url.params:
                url = url.copy_set_param(key, "***")
        return str(url)


@dataclass(frozen=True)
class Page:
    """One decoded provider response."""

    bars: list[Bar] = field(default_factory=list)
    continuation: Continuation | None = None

    @property
    def has_more(self) -> bool:
        return self.continuation is not None


# --- Download job ---


class DownloadJob(BaseModel):
    """Resolved parameters for a single download run."""

    model_config = ConfigDict(frozen=True)

    ticker: Ticker
    start: date
    end: date
    granularity: Granularity = Granularity.MINUTE
    provider: Provider = Provider.POLYGON
    output_format: OutputFormat = OutputFormat.CSV
    precision: int = 2
    include_header: bool = True
    split_by_day: bool = False
    out_path: Path | None = None

    @field_validator("ticker")
    @classmethod
    def ticker_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("ticker must not be empty")
        return v.strip()

    @field_validator("precision")
    @classmethod
    def precision_in_range(cls, v: int) -> int:
        if v < 0 or v > 10:
            raise ValueError("precision must be between 0 and 10")
        return v

    @model_validator(mode="after")
    def end_not_before_start(self) -> DownloadJob:
        if self.end < self.start:
            raise ValueError(
                f"end ({self.end}) must not be before start ({self.start})"
            )
        return self


@dataclass
class DownloadResult:
    """Outcome of a successful run."""

    pages: int = 0
    bars_written: int = 0
    paths: list[Path] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when the provider returned no bars for the whole range."""
        return self.bars_written == 0
