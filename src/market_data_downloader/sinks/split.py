"""Split-by-day CSV sink: one append-only file per UTC calendar date."""

from __future__ import annotations

import csv
import logging
from datetime import date
from pathlib import Path
from typing import IO, Sequence

from market_data_downloader.core.exceptions import OutputError
from market_data_downloader.core.models import Bar
from market_data_downloader.sinks.base import CSV_HEADER, DEFAULT_OUTPUT_DIR, csv_row

logger = logging.getLogger(__name__)


class SplitByDayCsvSink:
    """Routes each bar to ``{output_dir}/{year}/{month:02}/{ticker}_{date}.csv``.

    Files are opened in append mode so repeated runs extend existing days.
    The header goes only into files that are new or empty. Because bars
    arrive in ascending order, at most one day file is open at a time.

    Bars whose timestamp has no valid UTC date are dropped; the number
    dropped per batch is logged as a warning.
    """

    def __init__(
        self,
        ticker: str,
        output_dir: str | Path = DEFAULT_OUTPUT_DIR,
        precision: int = 2,
        include_header: bool = True,
    ) -> None:
        self._ticker = ticker
        self._output_dir = Path(output_dir)
        self._precision = precision
        self._include_header = include_header
        self._handle: IO[str] | None = None
        self._writer = None
        self._current_path: Path | None = None
        self._paths: dict[Path, None] = {}
        self._count = 0
        self._dropped = 0
        self._finalized = False

    @property
    def wrote_any(self) -> bool:
        return self._count > 0

    @property
    def bars_written(self) -> int:
        return self._count

    @property
    def bars_dropped(self) -> int:
        return self._dropped

    @property
    def paths(self) -> list[Path]:
        """Day files written during this run, in first-write order."""
        return list(self._paths)

    def path_for(self, day: date) -> Path:
        return (
            self._output_dir
            / str(day.year)
            / f"{day.month:02d}"
            / f"{self._ticker}_{day.isoformat()}.csv"
        )

    def append(self, bars: Sequence[Bar]) -> int:
        if not bars:
            return 0
        if self._finalized:
            raise OutputError(
                f"Cannot append to finalized sink: {self._output_dir}",
                context={"path": str(self._output_dir)},
            )

        written = 0
        dropped = 0
        try:
            for bar in bars:
                dt = bar.utc_datetime
                if dt is None:
                    dropped += 1
                    continue
                path = self.path_for(dt.date())
                if path != self._current_path:
                    self._switch_to(path)
                self._writer.writerow(csv_row(self._ticker, bar, self._precision))
                written += 1
            if self._handle is not None:
                self._handle.flush()
        except OSError as e:
            raise OutputError(
                f"Cannot write {self._current_path}: {e}",
                context={"path": str(self._current_path)},
            ) from e
        finally:
            self._count += written
            self._dropped += dropped

        if dropped:
            logger.warning(
                "Dropped %d bar(s) for %s with timestamps outside the UTC calendar",
                dropped,
                self._ticker,
            )
        return written

    def finalize(self) -> None:
        self._finalized = True
        self._close_current()

    def __enter__(self) -> SplitByDayCsvSink:
        return self

    def __exit__(self, *exc: object) -> None:
        self.finalize()

    def _switch_to(self, path: Path) -> None:
        self._close_current()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            is_new = not path.exists() or path.stat().st_size == 0
            self._handle = open(path, "a", newline="", encoding="utf-8")
        except OSError as e:
            raise OutputError(
                f"Cannot create {path}: {e}",
                context={"path": str(path)},
            ) from e

        self._writer = csv.writer(self._handle, lineterminator="\n")
        self._current_path = path
        self._paths[path] = None
        if is_new and self._include_header:
            self._writer.writerow(CSV_HEADER)
        logger.info("Appending to %s", path)

    def _close_current(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._writer = None
            self._current_path = None
