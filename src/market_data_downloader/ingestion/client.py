"""Async HTTP transport for provider APIs."""

from __future__ import annotations

import logging

import httpx

from market_data_downloader.core.config import HttpConfig
from market_data_downloader.core.exceptions import (
    EntitlementError,
    HttpStatusError,
    NetworkError,
)
from market_data_downloader.core.models import PageRequest

logger = logging.getLogger(__name__)

_ENTITLEMENT_HINT = (
    "Hint: Your API key may not be entitled to this data. Try:\n"
    "- Using --granularity day (daily aggregates) instead of minute\n"
    "- Using a different ticker (e.g., equities like AAPL)\n"
    "- Upgrading your plan for minute/index data"
)


class MarketDataClient:
    """Thin async client that performs one GET per page.

    There is no retry logic: any transport failure or non-2xx status is
    raised immediately and ends the run.

    Use via ``async with MarketDataClient(...) as client:``. An existing
    ``httpx.AsyncClient`` may be injected; it is then not closed here.
    """

    def __init__(
        self,
        config: HttpConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        config = config or HttpConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            timeout=httpx.Timeout(config.timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> MarketDataClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, request: PageRequest) -> str:
        """GET ``request.url`` and return the response body.

        Raises:
            NetworkError: The request could not be sent or received.
            EntitlementError: HTTP 403.
            HttpStatusError: Any other non-2xx status.
        """
        url = request.redacted_url
        try:
            response = await self._client.get(request.url)
        except httpx.RequestError as e:
            raise NetworkError(
                f"Request failed: {url}: {e}",
                context={"url": url, "error": str(e)},
            ) from e

        if response.is_success:
            return response.text

        body = response.text
        status = response.status_code
        if status == 403:
            raise EntitlementError(
                f"HTTP 403 Forbidden: {body}\n{_ENTITLEMENT_HINT}\nRequest URL: {url}",
                status_code=status,
                body=body,
                context={"url": url},
            )

        raise HttpStatusError(
            f"HTTP {status}: {body}",
            status_code=status,
            body=body,
            context={"url": url},
        )
