"""Provider adapter protocol: the source-agnostic interface layer.

Architecture
------------
The download loop never knows which API it is talking to:

    Paginator → ProviderAdapter.build_*_request → PageRequest → HTTP
    HTTP body → ProviderAdapter.decode → Page(bars, continuation) → Sink

- **ProviderAdapter** owns everything provider-specific: URL layout, query
  parameters, authentication parameter name, response schema, and how a
  continuation turns into the next request.

- **Page** is the only thing the paginator inspects. A ``None``
  continuation means the provider has no more data for the range.

Adding a provider means writing one adapter and registering it in
``market_data_downloader.providers.create_adapter``.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Protocol, runtime_checkable

from market_data_downloader.core.exceptions import DecodeError
from market_data_downloader.core.models import Granularity, Page, PageRequest


@runtime_checkable
class ProviderAdapter(Protocol):
    """Builds provider requests and decodes provider pages.

    Attributes
    ----------
    name : str
        Lowercase provider identifier used in logs and error context.
    api_key_env : str
        Environment variable conventionally holding the provider's key.
    supplies_extras : bool
        Whether bars carry ``vwap``/``trade_count`` pass-through fields.
    """

    name: str
    api_key_env: str
    supplies_extras: bool

    def build_initial_request(
        self,
        ticker: str,
        start: date,
        end: date,
        granularity: Granularity,
        api_key: str,
    ) -> PageRequest: ...

    def decode(self, raw_body: str | bytes) -> Page: ...

    def build_next_request(
        self,
        previous: PageRequest,
        continuation: str,
        api_key: str,
    ) -> PageRequest: ...


def decode_envelope(raw_body: str | bytes, provider: str) -> dict[str, Any]:
    """Parse a response body into its top-level JSON object.

    Raises:
        DecodeError: If the body is not valid JSON or not a JSON object.
    """
    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(
            f"Invalid JSON from {provider}: {e}",
            context={"provider": provider, "body": _preview(raw_body)},
        ) from e

    if not isinstance(payload, dict):
        raise DecodeError(
            f"Expected a JSON object from {provider}, got {type(payload).__name__}",
            context={"provider": provider, "body": _preview(raw_body)},
        )
    return payload


def _preview(raw_body: str | bytes, limit: int = 200) -> str:
    """Truncated body for error context."""
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8", errors="replace")
    return raw_body[:limit]
