"""Sequential fetch → decode → write → delay loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Protocol

from market_data_downloader.core.models import Granularity, PageRequest
from market_data_downloader.ingestion.rate_limit import FixedDelay
from market_data_downloader.providers.base import ProviderAdapter
from market_data_downloader.sinks.base import BarSink

logger = logging.getLogger(__name__)


class PaginatorState(StrEnum):
    """States of a single pagination run."""

    FETCHING = "fetching"
    DECODING = "decoding"
    WRITING = "writing"
    DELAYING = "delaying"
    DONE = "done"
    FAILED = "failed"


class PageFetcher(Protocol):
    """Anything that turns a PageRequest into a response body."""

    async def fetch(self, request: PageRequest) -> str: ...


@dataclass
class PaginationStats:
    """Counters for a completed run."""

    pages: int = 0
    bars: int = 0


class Paginator:
    """Drives one ticker/range download to completion.

    At most one request is in flight. Each page is decoded and handed to
    the sink before its continuation is looked at, so everything up to a
    failing page is already on disk when an error propagates. Errors are
    never retried; the state moves to ``FAILED`` and the exception is
    re-raised.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        adapter: ProviderAdapter,
        sink: BarSink,
        limiter: FixedDelay,
        api_key: str,
    ) -> None:
        self._fetcher = fetcher
        self._adapter = adapter
        self._sink = sink
        self._limiter = limiter
        self._api_key = api_key
        self.state = PaginatorState.FETCHING

    async def run(
        self,
        ticker: str,
        start: date,
        end: date,
        granularity: Granularity,
    ) -> PaginationStats:
        stats = PaginationStats()
        request: PageRequest | None = self._adapter.build_initial_request(
            ticker, start, end, granularity, self._api_key
        )

        try:
            while request is not None:
                stats.pages += 1
                self._transition(PaginatorState.FETCHING)
                logger.info("Fetching page %d: %s", stats.pages, request.redacted_url)
                body = await self._fetcher.fetch(request)

                self._transition(PaginatorState.DECODING)
                page = self._adapter.decode(body)

                self._transition(PaginatorState.WRITING)
                stats.bars += self._sink.append(page.bars)

                if not page.has_more:
                    request = None
                    continue

                self._transition(PaginatorState.DELAYING)
                await self._limiter.wait()
                request = self._adapter.build_next_request(
                    request, page.continuation, self._api_key
                )
        except Exception:
            self._transition(PaginatorState.FAILED)
            raise

        self._transition(PaginatorState.DONE)
        logger.info("Done. Total pages: %d", stats.pages)
        return stats

    def _transition(self, state: PaginatorState) -> None:
        logger.debug("%s -> %s", self.state, state)
        self.state = state
