"""Sink protocol and shared formatting helpers.

A sink receives bars one page at a time and is the only component that
touches output files. Files are opened lazily on the first non-empty batch,
so a run that returns no data leaves nothing on disk.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from market_data_downloader.core.models import Bar, OutputFormat

CSV_HEADER: list[str] = ["ticker", "timestamp", "open", "high", "low", "close", "volume"]

DEFAULT_OUTPUT_DIR = "output"

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@runtime_checkable
class BarSink(Protocol):
    """Streaming destination for decoded bars.

    ``finalize()`` must be safe to call more than once and on failure
    paths; implementations also act as context managers that finalize on
    exit.
    """

    @property
    def wrote_any(self) -> bool: ...

    @property
    def bars_written(self) -> int: ...

    @property
    def paths(self) -> list[Path]: ...

    def append(self, bars: Sequence[Bar]) -> int: ...

    def finalize(self) -> None: ...


def default_output_path(
    ticker: str,
    start: date,
    end: date,
    output_format: OutputFormat,
    output_dir: str | Path = DEFAULT_OUTPUT_DIR,
) -> Path:
    """``{output_dir}/{ticker}_{from}_{to}.{csv|json}``."""
    ext = OutputFormat(output_format).value
    return Path(output_dir) / f"{ticker}_{start.isoformat()}_{end.isoformat()}.{ext}"


def format_number(value: float, precision: int) -> str:
    """Fixed-point rendering used for every CSV numeric field."""
    return f"{value:.{precision}f}"


def format_timestamp(bar: Bar) -> str:
    """``YYYY-MM-DD HH:MM:SS`` in UTC, or the raw epoch-ms if out of range."""
    dt = bar.utc_datetime
    if dt is None:
        return str(bar.timestamp)
    return dt.strftime(_TIMESTAMP_FORMAT)


def csv_row(ticker: str, bar: Bar, precision: int) -> list[str]:
    """One CSV record, aligned with CSV_HEADER."""
    return [
        ticker,
        format_timestamp(bar),
        format_number(bar.open, precision),
        format_number(bar.high, precision),
        format_number(bar.low, precision),
        format_number(bar.close, precision),
        format_number(bar.volume, precision) if bar.volume is not None else "",
    ]
