"""One download run: resolve, wire, paginate, finalize."""

from __future__ import annotations

import logging

import httpx

from market_data_downloader.core.config import DownloaderConfig, resolve_api_key
from market_data_downloader.core.models import DownloadJob, DownloadResult
from market_data_downloader.ingestion.client import MarketDataClient
from market_data_downloader.ingestion.paginator import Paginator
from market_data_downloader.ingestion.rate_limit import FixedDelay
from market_data_downloader.providers import create_adapter
from market_data_downloader.sinks import create_sink

logger = logging.getLogger(__name__)


async def download(
    job: DownloadJob,
    config: DownloaderConfig | None = None,
    *,
    api_key: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    limiter: FixedDelay | None = None,
) -> DownloadResult:
    """Download ``job`` to disk and report what was written.

    Every configuration problem (missing key, incompatible output mode) is
    raised before the first request. The sink is finalized on every exit
    path, so JSON output stays a valid array even when a later page fails.

    Raises:
        ConfigError: Missing API key or unsupported format/split combination.
        NetworkError, HttpStatusError, EntitlementError: Transport failures.
        DecodeError, ProviderError, ParseError: Malformed provider pages.
        OutputError: The sink could not write.
    """
    config = config or DownloaderConfig()
    key = resolve_api_key(job.provider, api_key)
    adapter = create_adapter(job.provider)
    sink = create_sink(
        job,
        output_dir=config.output.directory,
        include_extras=adapter.supplies_extras,
    )
    limiter = limiter or FixedDelay(config.rate_limit_wait_secs)

    logger.info(
        "Downloading %s %s bars for %s..%s from %s",
        job.ticker, job.granularity.value, job.start, job.end, adapter.name,
    )

    async with MarketDataClient(config.http, http_client=http_client) as client:
        with sink:
            paginator = Paginator(client, adapter, sink, limiter, key)
            stats = await paginator.run(job.ticker, job.start, job.end, job.granularity)

    result = DownloadResult(pages=stats.pages, bars_written=stats.bars, paths=sink.paths)
    if result.is_empty:
        logger.info("No bars returned after %d page(s)", result.pages)
    return result
