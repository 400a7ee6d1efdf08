"""Single-file JSON array sink."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import IO, Any, Sequence

from market_data_downloader.core.exceptions import OutputError
from market_data_downloader.core.models import Bar

logger = logging.getLogger(__name__)


def bar_to_json(bar: Bar, precision: int, include_extras: bool) -> dict[str, Any]:
    """Render a bar as the on-disk JSON object.

    ``vw`` and ``n`` are emitted only for providers that supply them, so
    every object in one file has the same keys.
    """
    obj: dict[str, Any] = {
        "timestamp": bar.timestamp,
        "open": round(bar.open, precision),
        "high": round(bar.high, precision),
        "low": round(bar.low, precision),
        "close": round(bar.close, precision),
        "volume": round(bar.volume, precision) if bar.volume is not None else None,
    }
    if include_extras:
        obj["vw"] = round(bar.vwap, precision) if bar.vwap is not None else None
        obj["n"] = bar.trade_count
    return obj


class JsonFileSink:
    """Streams bars into a single JSON array.

    The opening bracket is written with the first non-empty batch and the
    closing bracket by ``finalize()``, which also runs on failure paths
    when the sink is used as a context manager. A file is therefore always
    a complete array, even after a mid-run error.
    """

    def __init__(
        self,
        path: Path,
        precision: int = 2,
        include_extras: bool = False,
    ) -> None:
        self._path = Path(path)
        self._precision = precision
        self._include_extras = include_extras
        self._handle: IO[str] | None = None
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
                obj = bar_to_json(bar, self._precision, self._include_extras)
                # encode first; a rejected bar must not leave a trailing comma
                text = json.dumps(obj, allow_nan=False)
                self._handle.write("," + text if self._count > 0 else text)
                self._count += 1
            self._handle.flush()
        except ValueError as e:
            raise OutputError(
                f"Cannot encode bar as standard JSON for {self._path}: {e}",
                context={"path": str(self._path)},
            ) from e
        except OSError as e:
            raise OutputError(
                f"Cannot write {self._path}: {e}",
                context={"path": str(self._path)},
            ) from e

        return len(bars)

    def finalize(self) -> None:
        """Close the array and the file. Idempotent."""
        self._finalized = True
        if self._handle is None:
            return
        try:
            self._handle.write("]")
            self._handle.flush()
        finally:
            self._handle.close()
            self._handle = None
        logger.debug("Closed %s after %d objects", self._path, self._count)

    def __enter__(self) -> JsonFileSink:
        return self

    def __exit__(self, *exc: object) -> None:
        self.finalize()

    def _open(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self._path, "w", encoding="utf-8")
            self._handle.write("[")
        except OSError as e:
            raise OutputError(
                f"Cannot create {self._path}: {e}",
                context={"path": str(self._path)},
            ) from e
        logger.info("Writing JSON to %s", self._path)
