"""Page fetching: HTTP client, pagination loop, and pacing."""

from market_data_downloader.ingestion.client import MarketDataClient
from market_data_downloader.ingestion.paginator import (
    PageFetcher,
    PaginationStats,
    Paginator,
    PaginatorState,
)
from market_data_downloader.ingestion.rate_limit import FixedDelay

__all__ = [
    "FixedDelay",
    "MarketDataClient",
    "PageFetcher",
    "PaginationStats",
    "Paginator",
    "PaginatorState",
]
