"""market-data-downloader: paginated historical OHLCV bars to CSV or JSON."""

from market_data_downloader.pipeline import download

__all__ = ["download"]
