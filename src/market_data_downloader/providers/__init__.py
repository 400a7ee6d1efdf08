"""Provider adapters for market-data HTTP APIs.

Built-in implementations:

- ``PolygonAdapter``: Polygon.io aggregates, paginated by ``next_url``.
- ``TwelveDataAdapter``: Twelve Data time series, paginated by page token.
"""

from market_data_downloader.core.models import Provider
from market_data_downloader.providers.base import ProviderAdapter, decode_envelope
from market_data_downloader.providers.polygon import PolygonAdapter
from market_data_downloader.providers.twelvedata import TwelveDataAdapter

_ADAPTERS: dict[Provider, type] = {
    Provider.POLYGON: PolygonAdapter,
    Provider.TWELVEDATA: TwelveDataAdapter,
}


def create_adapter(provider: Provider) -> ProviderAdapter:
    """Instantiate the adapter registered for ``provider``."""
    return _ADAPTERS[Provider(provider)]()


__all__ = [
    "ProviderAdapter",
    "PolygonAdapter",
    "TwelveDataAdapter",
    "create_adapter",
    "decode_envelope",
]
