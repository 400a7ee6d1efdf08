"""Output sinks for streamed bars.

Three mutually exclusive variants, selected once per run:

- ``CsvFileSink``: one CSV file for the whole run.
- ``JsonFileSink``: one JSON array for the whole run.
- ``SplitByDayCsvSink``: one append-only CSV per UTC calendar day.
"""

from __future__ import annotations

from pathlib import Path

from market_data_downloader.core.exceptions import ConfigError
from market_data_downloader.core.models import DownloadJob, OutputFormat
from market_data_downloader.sinks.base import (
    CSV_HEADER,
    DEFAULT_OUTPUT_DIR,
    BarSink,
    csv_row,
    default_output_path,
    format_number,
    format_timestamp,
)
from market_data_downloader.sinks.csv_sink import CsvFileSink
from market_data_downloader.sinks.json_sink import JsonFileSink, bar_to_json
from market_data_downloader.sinks.split import SplitByDayCsvSink


def create_sink(
    job: DownloadJob,
    output_dir: str | Path = DEFAULT_OUTPUT_DIR,
    include_extras: bool = False,
) -> CsvFileSink | JsonFileSink | SplitByDayCsvSink:
    """Select the sink variant for a run. Performs no I/O.

    Raises:
        ConfigError: Split-by-day was combined with JSON output or an
            explicit output path.
    """
    if job.split_by_day:
        if job.output_format is not OutputFormat.CSV:
            raise ConfigError(
                "--split-by-day is only supported with --format csv",
                context={"field": "split_by_day", "value": job.output_format.value},
            )
        if job.out_path is not None:
            raise ConfigError(
                "--out cannot be combined with --split-by-day; day files are written "
                "under the output directory",
                context={"field": "out_path", "value": str(job.out_path)},
            )
        return SplitByDayCsvSink(
            ticker=job.ticker,
            output_dir=output_dir,
            precision=job.precision,
            include_header=job.include_header,
        )

    path = job.out_path or default_output_path(
        job.ticker, job.start, job.end, job.output_format, output_dir
    )
    if job.output_format is OutputFormat.JSON:
        return JsonFileSink(path, precision=job.precision, include_extras=include_extras)
    return CsvFileSink(
        path,
        ticker=job.ticker,
        precision=job.precision,
        include_header=job.include_header,
    )


__all__ = [
    "BarSink",
    "CsvFileSink",
    "JsonFileSink",
    "SplitByDayCsvSink",
    "CSV_HEADER",
    "DEFAULT_OUTPUT_DIR",
    "bar_to_json",
    "create_sink",
    "csv_row",
    "default_output_path",
    "format_number",
    "format_timestamp",
]
