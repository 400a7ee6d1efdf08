"""Single-file CSV sink."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import IO, Sequence

from market_data_downloader.core.exceptions import OutputError
from market_data_downloader.core.models import Bar
from market_data_downloader.sinks.base import CSV_HEADER, csv_row

logger = logging.getLogger(__name__)


class CsvFileSink:
    """Writes every bar of the run to one CSV file.

    Parameters
    ----------
    path : Path
        Destination file. Parent directories are created on first write.
    ticker : str
        Value of the ``ticker`` column.
    precision : int
        Decimal places for OHLCV values.
    include_header : bool
        Write the header row when the file is created.
    """

    def __init__(
        self,
        path: Path,
        ticker: str,
        precision: int = 2,
        include_header: bool = True,
    ) -> None:
        self._path = Path(path)
        self._ticker = ticker
        self._precision = precision
        self._include_header = include_header
        self._handle: IO[str] | None = None
        self._writer = None
        self._count = 0
        self._finalized = False

    @property
    def wrote_any(self) -> bool:
        return self._count > 0

    @property
    def bars_written(self) -> int:
        return self._count

    @property
    def paths(self) -> list[Path]:
        return [self._path] if self.wrote_any else []

    def append(self, bars: Sequence[Bar]) -> int:
        """Write one batch and flush. Empty batches never touch the disk."""
        if not bars:
            return 0
        if self._finalized:
            raise OutputError(
                f"Cannot append to finalized sink: {self._path}",
                context={"path": str(self._path)},
            )
        if self._handle is None:
            self._open()

        try:
            for bar in bars:
                self._writer.writerow(csv_row(self._ticker, bar, self._precision))
                self._count += 1
            self._handle.flush()
        except OSError as e:
            raise OutputError(
                f"Cannot write {self._path}: {e}",
                context={"path": str(self._path)},
            ) from e

        return len(bars)

    def finalize(self) -> None:
        self._finalized = True
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            logger.debug("Closed %s after %d rows", self._path, self._count)

    def __enter__(self) -> CsvFileSink:
        return self

    def __exit__(self, *exc: object) -> None:
        self.finalize()

    def _open(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self._path, "w", newline="", encoding="utf-8")
        except OSError as e:
            raise OutputError(
                f"Cannot create {self._path}: {e}",
                context={"path": str(self._path)},
            ) from e

        self._writer = csv.writer(self._handle, lineterminator="\n")
        if self._include_header:
            self._writer.writerow(CSV_HEADER)
        logger.info("Writing CSV to %s", self._path)
