"""Shared pytest fixtures for market-data-downloader."""

import logging

import pytest

from market_data_downloader.core.models import Bar


# 2025-01-02 00:00:00 UTC
JAN_2_2025_MS = 1735776000000
ONE_MINUTE_MS = 60_000


@pytest.fixture(autouse=True)
def _clear_api_keys(monkeypatch):
    """Keep real credentials in the developer's shell out of every test."""
    for var in ("POLYGON_API_KEY", "TWELVEDATA_API_KEY", "MARKET_DATA_CONFIG"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def sample_bar() -> Bar:
    return Bar(
        timestamp=JAN_2_2025_MS,
        open=190.5,
        high=191.25,
        low=189.75,
        close=190.123,
        volume=1000.0,
        vwap=190.4,
        trade_count=42,
    )


@pytest.fixture
def sample_bars() -> list[Bar]:
    return [
        Bar(
            timestamp=JAN_2_2025_MS + i * ONE_MINUTE_MS,
            open=100.0 + i,
            high=101.0 + i,
            low=99.0 + i,
            close=100.5 + i,
            volume=1000.0 * (i + 1),
        )
        for i in range(3)
    ]


@pytest.fixture
def index_bar() -> Bar:
    """An index-style bar with no volume."""
    return Bar(
        timestamp=JAN_2_2025_MS,
        open=4742.83,
        high=4754.33,
        low=4722.67,
        close=4742.83,
    )


@pytest.fixture
def polygon_payload() -> dict:
    """Single-page Polygon aggregates response for AAPL on 2025-01-02."""
    return {
        "ticker": "AAPL",
        "queryCount": 1,
        "resultsCount": 1,
        "adjusted": True,
        "status": "OK",
        "request_id": "abc123",
        "results": [
            {
                "t": JAN_2_2025_MS,
                "o": 248.93,
                "h": 249.1,
                "l": 241.82,
                "c": 243.85,
                "v": 55740731.0,
                "vw": 244.9067,
                "n": 779389,
            }
        ],
    }


@pytest.fixture
def twelvedata_payload() -> dict:
    """Single-page Twelve Data time-series response (all values are strings)."""
    return {
        "meta": {"symbol": "AAPL", "interval": "1min", "exchange_timezone": "UTC"},
        "values": [
            {
                "datetime": "2025-01-02 14:30:00",
                "open": "248.93",
                "high": "249.10",
                "low": "248.50",
                "close": "248.80",
                "volume": "120000",
            },
            {
                "datetime": "2025-01-02 14:31:00",
                "open": "248.80",
                "high": "249.00",
                "low": "248.60",
                "close": "248.95",
                "volume": "98000",
            },
        ],
        "status": "ok",
    }


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo handler and level changes the CLI makes to the package logger."""
    pkg_logger = logging.getLogger("market_data_downloader")
    handlers, level = list(pkg_logger.handlers), pkg_logger.level
    yield
    pkg_logger.handlers[:] = handlers
    pkg_logger.setLevel(level)
