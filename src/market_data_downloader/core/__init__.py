"""market_data_downloader.core: Foundation types, config, and exceptions."""

from market_data_downloader.core.config import (
    API_KEY_ENV_VARS,
    DownloaderConfig,
    HttpConfig,
    OutputConfig,
    load_config,
    resolve_api_key,
)
from market_data_downloader.core.exceptions import (
    ConfigError,
    DecodeError,
    EntitlementError,
    HttpStatusError,
    MarketDataError,
    NetworkError,
    OutputError,
    ParseError,
    ProviderError,
)
from market_data_downloader.core.models import (
    Bar,
    Continuation,
    DownloadJob,
    DownloadResult,
    Granularity,
    OutputFormat,
    Page,
    PageRequest,
    Provider,
    Ticker,
)

__all__ = [
    # Type aliases
    "Ticker",
    "Continuation",
    # Enums
    "Granularity",
    "OutputFormat",
    "Provider",
    # Models
    "Bar",
    "Page",
    "PageRequest",
    "DownloadJob",
    "DownloadResult",
    # Config
    "DownloaderConfig",
    "HttpConfig",
    "OutputConfig",
    "API_KEY_ENV_VARS",
    "load_config",
    "resolve_api_key",
    # Exceptions
    "MarketDataError",
    "ConfigError",
    "NetworkError",
    "HttpStatusError",
    "EntitlementError",
    "DecodeError",
    "ProviderError",
    "ParseError",
    "OutputError",
]
