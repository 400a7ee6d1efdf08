"""Polygon.io aggregates adapter: URL-cursor pagination.

Uses the ``/v2/aggs/ticker/{ticker}/range/1/{timespan}/{from}/{to}``
endpoint. Each page may carry a ``next_url``: an absolute URL for the next
page which may or may not already include the ``apiKey`` parameter.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from market_data_downloader.core.exceptions import DecodeError, ParseError, ProviderError
from market_data_downloader.core.models import Bar, Granularity, Page, PageRequest
from market_data_downloader.providers.base import decode_envelope

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.polygon.io"
_AGGS_PATH = "/v2/aggs/ticker/{ticker}/range/1/{timespan}/{start}/{end}"
_API_KEY_PARAM = "apiKey"
_MAX_LIMIT = 50000


class _PolygonAgg(BaseModel):
    """One entry of the ``results`` array."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    t: int
    o: float
    h: float
    l: float  # noqa: E741
    c: float
    v: float | None = None
    vw: float | None = None
    n: int | None = None


class PolygonAdapter:
    """Adapter for Polygon.io's aggregates (bars) endpoint.

    Parameters
    ----------
    base_url : str
        Override base URL (useful for testing).
    limit : int
        Requested page size. Polygon caps this at 50000.
    """

    name = "polygon"
    api_key_env = "POLYGON_API_KEY"
    supplies_extras = True

    def __init__(self, base_url: str = _BASE_URL, limit: int = _MAX_LIMIT) -> None:
        self._base_url = base_url.rstrip("/")
        self._limit = min(limit, _MAX_LIMIT)

    def build_initial_request(
        self,
        ticker: str,
        start: date,
        end: date,
        granularity: Granularity,
        api_key: str,
    ) -> PageRequest:
        path = _AGGS_PATH.format(
            ticker=quote(ticker, safe=""),
            timespan=granularity.value,
            start=start.isoformat(),
            end=end.isoformat(),
        )
        url = httpx.URL(
            f"{self._base_url}{path}",
            params={
                "adjusted": "true",
                "sort": "asc",
                "limit": str(self._limit),
                _API_KEY_PARAM: api_key,
            },
        )
        return PageRequest(url=str(url))

    def decode(self, raw_body: str | bytes) -> Page:
        """Parse an aggregates response into a Page.

        A missing ``results`` array is an empty page, not an error.

        Raises:
            DecodeError: Malformed envelope.
            ProviderError: ``status`` is ``ERROR``.
            ParseError: A result entry is missing a field or is non-numeric.
        """
        payload = decode_envelope(raw_body, self.name)

        status = payload.get("status")
        if isinstance(status, str) and status.upper() == "ERROR":
            message = payload.get("error") or payload.get("message") or "unknown error"
            raise ProviderError(
                f"Polygon API error: {message}",
                context={"provider": self.name, "request_id": payload.get("request_id")},
            )

        results = payload.get("results")
        if results is None:
            results = []
        if not isinstance(results, list):
            raise DecodeError(
                f"Polygon 'results' must be a list, got {type(results).__name__}",
                context={"provider": self.name},
            )

        bars = [self._to_bar(item) for item in results]

        next_url = payload.get("next_url") or None
        if next_url is not None and not isinstance(next_url, str):
            raise DecodeError(
                "Polygon 'next_url' must be a string",
                context={"provider": self.name, "value": next_url},
            )

        logger.debug("Decoded %d polygon bars (more=%s)", len(bars), next_url is not None)
        return Page(bars=bars, continuation=next_url)

    def build_next_request(
        self,
        previous: PageRequest,
        continuation: str,
        api_key: str,
    ) -> PageRequest:
        """Turn a ``next_url`` into the next request.

        The key is injected only when the URL has no ``apiKey`` parameter;
        an existing value is never overwritten.
        """
        url = httpx.URL(previous.url).join(continuation)
        if _API_KEY_PARAM not in url.params:
            url = url.copy_add_param(_API_KEY_PARAM, api_key)
        return PageRequest(url=str(url))

    def _to_bar(self, item: Any) -> Bar:
        if not isinstance(item, dict):
            raise ParseError(
                f"Polygon result entry must be an object, got {type(item).__name__}",
                context={"provider": self.name, "value": item},
            )
        try:
            agg = _PolygonAgg.model_validate(item)
        except ValidationError as e:
            err = e.errors()[0]
            field = ".".join(str(p) for p in err["loc"])
            raise ParseError(
                f"Invalid Polygon field {field!r}: {err['msg']}",
                context={"provider": self.name, "field": field, "value": err.get("input")},
            ) from e

        return Bar(
            timestamp=agg.t,
            open=agg.o,
            high=agg.h,
            low=agg.l,
            close=agg.c,
            volume=agg.v,
            vwap=agg.vw,
            trade_count=agg.n,
        )
