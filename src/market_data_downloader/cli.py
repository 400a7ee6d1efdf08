"""Click-based CLI for market-data-downloader.

Thin wrapper around the library. Zero business logic: option parsing,
logging setup, and exit-code mapping only; the run itself is
``market_data_downloader.pipeline.download``.

Examples:
    market-data-downloader download -t I:SPX -f 2024-01-01 -T 2024-01-03 --out spx.csv
    POLYGON_API_KEY=... market-data-downloader download -t I:NDX -f 2024-02-01 -T 2024-02-01 --format json
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from market_data_downloader.core.exceptions import ConfigError, MarketDataError
from market_data_downloader.core.models import (
    DownloadJob,
    Granularity,
    OutputFormat,
    Provider,
)

console = Console(stderr=True)

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from market_data_downloader.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


def _configure_logging(verbose: int) -> None:
    """Route package logs to stderr through Rich. -v for INFO, -vv for DEBUG."""
    level = _LOG_LEVELS.get(verbose, logging.DEBUG)
    pkg_logger = logging.getLogger("market_data_downloader")
    pkg_logger.handlers.clear()
    pkg_logger.addHandler(
        RichHandler(console=console, show_path=False, rich_tracebacks=False)
    )
    pkg_logger.setLevel(level)


def _build_job(config, **fields) -> DownloadJob:
    """Merge CLI values over config defaults into a validated DownloadJob."""
    defaults = {
        "granularity": config.granularity,
        "provider": config.provider,
        "output_format": config.output.format,
        "precision": config.output.precision,
        "include_header": config.output.include_header,
        "split_by_day": config.output.split_by_day,
    }
    values = {**defaults, **{k: v for k, v in fields.items() if v is not None}}
    try:
        return DownloadJob(**values)
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ConfigError(messages, context={"source": "cli"}) from e


def _fail(exc: MarketDataError) -> None:
    console.print(f"Error: {exc}", style="red", markup=False, soft_wrap=True)
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="MARKET_DATA_CONFIG",
    default=None,
    help="Path to market-data.yml config file.",
)
@click.version_option(package_name="market-data-downloader")
@click.pass_context
def cli(ctx: click.Context, config: str | None) -> None:
    """Market Data Downloader: paginated OHLCV bars to CSV or JSON."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


# ---------------------------------------------------------------------------
# download
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--ticker", "-t", type=str, required=True, help="Ticker, e.g. AAPL or I:SPX.")
@click.option(
    "--from",
    "-f",
    "from_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    required=True,
    help="Start date (YYYY-MM-DD).",
)
@click.option(
    "--to",
    "-T",
    "to_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    required=True,
    help="End date, inclusive (YYYY-MM-DD).",
)
@click.option(
    "--apikey",
    "-k",
    "api_key",
    type=str,
    default=None,
    help="API key (default: POLYGON_API_KEY or TWELVEDATA_API_KEY).",
)
@click.option(
    "--out",
    "-o",
    "out",
    type=click.Path(dir_okay=False),
    default=None,
    help="Output file (default: output/{ticker}_{from}_{to}.{csv|json}).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice([f.value for f in OutputFormat], case_sensitive=False),
    default=None,
    help="Output format.",
)
@click.option(
    "--granularity",
    type=click.Choice([g.value for g in Granularity], case_sensitive=False),
    default=None,
    help="Bar size.",
)
@click.option(
    "--provider",
    type=click.Choice([p.value for p in Provider], case_sensitive=False),
    default=None,
    help="Market-data provider.",
)
@click.option("--precision", type=int, default=None, help="Decimal places for prices.")
@click.option("--no-header", is_flag=True, default=False, help="Omit the CSV header row.")
@click.option(
    "--split-by-day",
    is_flag=True,
    default=False,
    help="Write one CSV per UTC day under output/{year}/{month}/.",
)
@click.option(
    "--rate-limit-wait-secs",
    "wait_secs",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds to wait between pages (free Polygon plan: ~12s).",
)
@click.option("--verbose", "-v", count=True, help="Verbose logging (-vv for debug).")
@click.pass_context
def download(
    ctx: click.Context,
    ticker: str,
    from_date: datetime,
    to_date: datetime,
    api_key: str | None,
    out: str | None,
    output_format: str | None,
    granularity: str | None,
    provider: str | None,
    precision: int | None,
    no_header: bool,
    split_by_day: bool,
    wait_secs: float | None,
    verbose: int,
) -> None:
    """Download historical bars for one ticker and date range."""
    from market_data_downloader.pipeline import download as run_download

    _configure_logging(verbose)
    try:
        config = _load_config(ctx)
        job = _build_job(
            config,
            ticker=ticker,
            start=from_date.date(),
            end=to_date.date(),
            granularity=granularity,
            provider=provider,
            output_format=output_format,
            precision=precision,
            include_header=False if no_header else None,
            split_by_day=True if split_by_day else None,
            out_path=out,
        )
        if wait_secs is not None:
            config = config.model_copy(update={"rate_limit_wait_secs": wait_secs})

        result = _run_async(run_download(job, config, api_key=api_key))
    except MarketDataError as exc:
        _fail(exc)

    if result.is_empty:
        console.print(
            f"No data returned for {job.ticker} between {job.start} and {job.end}",
            markup=False,
            soft_wrap=True,
        )
        return

    for path in result.paths:
        console.print(f"Saved to {path}", markup=False, soft_wrap=True)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
