"""Twelve Data time-series adapter: page-token pagination.

Every value in a Twelve Data payload is a string, so this adapter does its
own numeric and datetime parsing. Any malformed field fails the whole page.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx

from market_data_downloader.core.exceptions import DecodeError, ParseError, ProviderError
from market_data_downloader.core.models import Bar, Granularity, Page, PageRequest
from market_data_downloader.providers.base import decode_envelope

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.twelvedata.com"
_TIME_SERIES_PATH = "/time_series"
_API_KEY_PARAM = "apikey"
_TOKEN_PARAM = "page_token"
_OUTPUT_SIZE = 5000

# Keys that may carry a page cursor on a previous request
_TOKEN_ALIASES = ("page_token", "next_page_token", "pageToken", "next")

_INTERVAL_MAP: dict[Granularity, str] = {
    Granularity.MINUTE: "1min",
    Granularity.DAY: "1day",
}

# Tried in order
_DATETIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TwelveDataAdapter:
    """Adapter for Twelve Data's ``/time_series`` endpoint.

    Requests are made with ``timezone=UTC`` so every ``datetime`` in the
    response is interpreted as UTC.
    """

    name = "twelvedata"
    api_key_env = "TWELVEDATA_API_KEY"
    supplies_extras = False

    def __init__(self, base_url: str = _BASE_URL, output_size: int = _OUTPUT_SIZE) -> None:
        self._base_url = base_url.rstrip("/")
        self._output_size = output_size

    def build_initial_request(
        self,
        ticker: str,
        start: date,
        end: date,
        granularity: Granularity,
        api_key: str,
    ) -> PageRequest:
        url = httpx.URL(
            f"{self._base_url}{_TIME_SERIES_PATH}",
            params={
                "symbol": ticker,
                "interval": _INTERVAL_MAP[granularity],
                # Explicit times keep the end date inclusive
                "start_date": f"{start.isoformat()} 00:00:00",
                "end_date": f"{end.isoformat()} 23:59:59",
                "order": "ASC",
                "timezone": "UTC",
                "outputsize": str(self._output_size),
                _API_KEY_PARAM: api_key,
            },
        )
        return PageRequest(url=str(url))

    def decode(self, raw_body: str | bytes) -> Page:
        """Parse a time-series response into a Page.

        Raises:
            DecodeError: Malformed envelope.
            ProviderError: ``status`` is ``error`` (any case).
            ParseError: A datetime or numeric string cannot be parsed.
        """
        payload = decode_envelope(raw_body, self.name)

        status = payload.get("status")
        if isinstance(status, str) and status.lower() == "error":
            message = payload.get("message") or "unknown error"
            raise ProviderError(
                f"Twelve Data API error: {message}",
                context={"provider": self.name, "code": payload.get("code")},
            )

        values = payload.get("values")
        if values is None:
            values = []
        if not isinstance(values, list):
            raise DecodeError(
                f"Twelve Data 'values' must be a list, got {type(values).__name__}",
                context={"provider": self.name},
            )

        bars = [self._to_bar(item) for item in values]

        token = payload.get("next_page_token") or None
        if token is not None and not isinstance(token, str):
            raise DecodeError(
                "Twelve Data 'next_page_token' must be a string",
                context={"provider": self.name, "value": token},
            )

        logger.debug("Decoded %d twelvedata bars (more=%s)", len(bars), token is not None)
        return Page(bars=bars, continuation=token)

    def build_next_request(
        self,
        previous: PageRequest,
        continuation: str,
        api_key: str,
    ) -> PageRequest:
        """Re-issue the previous query with exactly one ``page_token``."""
        url = httpx.URL(previous.url)
        for key in _TOKEN_ALIASES:
            url = url.copy_remove_param(key)
        url = url.copy_add_param(_TOKEN_PARAM, continuation)
        if _API_KEY_PARAM not in url.params:
            url = url.copy_add_param(_API_KEY_PARAM, api_key)
        return PageRequest(url=str(url))

    def _to_bar(self, item: Any) -> Bar:
        if not isinstance(item, dict):
            raise ParseError(
                f"Twelve Data value must be an object, got {type(item).__name__}",
                context={"provider": self.name, "value": item},
            )
        return Bar(
            timestamp=self._parse_timestamp(item.get("datetime")),
            open=self._parse_number(item, "open"),
            high=self._parse_number(item, "high"),
            low=self._parse_number(item, "low"),
            close=self._parse_number(item, "close"),
            volume=self._parse_number(item, "volume", required=False),
        )

    def _parse_timestamp(self, raw: Any) -> int:
        """Parse a UTC datetime string into epoch milliseconds."""
        if isinstance(raw, str):
            for fmt in _DATETIME_FORMATS:
                try:
                    dt = datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc)
                except ValueError:
                    continue
                return (dt - _EPOCH) // timedelta(milliseconds=1)

        raise ParseError(
            f"Invalid Twelve Data datetime: {raw!r}",
            context={"provider": self.name, "field": "datetime", "value": raw},
        )

    def _parse_number(
        self, item: dict[str, Any], field: str, required: bool = True
    ) -> float | None:
        raw = item.get(field)
        if raw is None or (raw == "" and not required):
            if required:
                raise ParseError(
                    f"Missing Twelve Data field {field!r}",
                    context={"provider": self.name, "field": field, "value": raw},
                )
            return None
        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            raise self._invalid_number(field, raw) from e
        # float() also takes "NaN", "inf" and "1_000"; none are valid numbers here
        if not math.isfinite(value) or (isinstance(raw, str) and "_" in raw):
            raise self._invalid_number(field, raw)
        return value

    def _invalid_number(self, field: str, raw: Any) -> ParseError:
        return ParseError(
            f"Invalid Twelve Data number for {field!r}: {raw!r}",
            context={"provider": self.name, "field": field, "value": raw},
        )
