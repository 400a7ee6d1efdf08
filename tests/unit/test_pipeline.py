"""Tests for market_data_downloader.pipeline.download."""

from __future__ import annotations

import json
import re
from datetime import date
from pathlib import Path

import httpx
import pytest
import respx

from market_data_downloader.core.config import DownloaderConfig, OutputConfig
from market_data_downloader.core.exceptions import (
    ConfigError,
    EntitlementError,
    ParseError,
    ProviderError,
)
from market_data_downloader.core.models import DownloadJob
from market_data_downloader.ingestion.rate_limit import FixedDelay
from market_data_downloader.pipeline import download

POLYGON_AAPL = re.compile(r"https://api\.polygon\.io/v2/aggs/ticker/AAPL/.*")
POLYGON_CURSOR = "https://api.polygon.io/v2/aggs/cursor/page2"
TWELVEDATA = "https://api.twelvedata.com/time_series"


# --- Fixtures ---


@pytest.fixture
def config(tmp_path: Path) -> DownloaderConfig:
    return DownloaderConfig(
        rate_limit_wait_secs=0,
        output=OutputConfig(directory=str(tmp_path / "output")),
    )


@pytest.fixture
def job() -> DownloadJob:
    return DownloadJob(ticker="AAPL", start=date(2025, 1, 2), end=date(2025, 1, 2))


def _agg(t: int) -> dict:
    return {"t": t, "o": 1.0, "h": 2.0, "l": 0.5, "c": 1.5, "v": 10.0, "vw": 1.2, "n": 3}


# --- Tests ---


class TestPolygonDownload:
    @respx.mock
    async def test_single_bar_csv(self, job, config, tmp_path, polygon_payload):
        respx.get(POLYGON_AAPL).mock(return_value=httpx.Response(200, json=polygon_payload))

        result = await download(job, config, api_key="k")

        path = tmp_path / "output" / "AAPL_2025-01-02_2025-01-02.csv"
        assert result.paths == [path]
        assert result.pages == 1
        assert result.bars_written == 1
        assert path.read_text().splitlines() == [
            "ticker,timestamp,open,high,low,close,volume",
            "AAPL,2025-01-02 00:00:00,248.93,249.10,241.82,243.85,55740731.00",
        ]

    @respx.mock
    async def test_multi_page_json_with_extras(self, job, config, tmp_path):
        first = respx.get(POLYGON_AAPL).mock(
            return_value=httpx.Response(
                200, json={"results": [_agg(1), _agg(2)], "next_url": POLYGON_CURSOR}
            )
        )
        second = respx.get(POLYGON_CURSOR).mock(
            return_value=httpx.Response(200, json={"results": [_agg(3)]})
        )
        json_job = DownloadJob(
            ticker="AAPL", start=date(2025, 1, 2), end=date(2025, 1, 2), output_format="json"
        )

        result = await download(json_job, config, api_key="k")

        assert first.call_count == 1
        assert second.call_count == 1
        assert second.calls.last.request.url.params["apiKey"] == "k"
        data = json.loads(result.paths[0].read_text())
        assert [o["timestamp"] for o in data] == [1, 2, 3]
        assert set(data[0]) == {"timestamp", "open", "high", "low", "close", "volume", "vw", "n"}

    @respx.mock
    async def test_zero_bars_creates_no_file(self, job, config, tmp_path):
        respx.get(POLYGON_AAPL).mock(
            return_value=httpx.Response(200, json={"status": "OK", "resultsCount": 0})
        )
        result = await download(job, config, api_key="k")
        assert result.is_empty
        assert result.paths == []
        assert not (tmp_path / "output").exists()

    @respx.mock
    async def test_entitlement_error_propagates(self, job, config, tmp_path):
        respx.get(POLYGON_AAPL).mock(return_value=httpx.Response(403, text="not entitled"))
        with pytest.raises(EntitlementError):
            await download(job, config, api_key="k")
        assert not (tmp_path / "output").exists()

    @respx.mock
    async def test_failed_second_page_keeps_valid_json(self, job, config):
        respx.get(POLYGON_AAPL).mock(
            return_value=httpx.Response(
                200, json={"results": [_agg(1)], "next_url": POLYGON_CURSOR}
            )
        )
        respx.get(POLYGON_CURSOR).mock(
            return_value=httpx.Response(200, json={"results": [{"t": 2, "o": "bad"}]})
        )
        json_job = DownloadJob(
            ticker="AAPL",
            start=date(2025, 1, 2),
            end=date(2025, 1, 2),
            output_format="json",
            out_path=Path(config.output.directory) / "partial.json",
        )
        with pytest.raises(ParseError):
            await download(json_job, config, api_key="k")
        assert len(json.loads(json_job.out_path.read_text())) == 1

    @respx.mock
    async def test_waits_between_pages_only(self, job, config):
        respx.get(POLYGON_AAPL).mock(
            return_value=httpx.Response(
                200, json={"results": [_agg(1)], "next_url": POLYGON_CURSOR}
            )
        )
        respx.get(POLYGON_CURSOR).mock(
            return_value=httpx.Response(200, json={"results": [_agg(2)]})
        )
        sleeps: list[float] = []

        async def record(seconds: float) -> None:
            sleeps.append(seconds)

        await download(job, config, api_key="k", limiter=FixedDelay(12.0, sleep=record))
        assert sleeps == [12.0]


class TestTwelveDataDownload:
    @respx.mock
    async def test_json_has_no_extras(self, config, tmp_path, twelvedata_payload):
        route = respx.get(TWELVEDATA).mock(
            return_value=httpx.Response(200, json=twelvedata_payload)
        )
        job = DownloadJob(
            ticker="AAPL",
            start=date(2025, 1, 2),
            end=date(2025, 1, 2),
            provider="twelvedata",
            output_format="json",
        )
        result = await download(job, config, api_key="td-key")

        assert route.calls.last.request.url.params["apikey"] == "td-key"
        data = json.loads(result.paths[0].read_text())
        assert len(data) == 2
        assert "vw" not in data[0]

    @respx.mock
    async def test_provider_error_payload(self, config):
        respx.get(TWELVEDATA).mock(
            return_value=httpx.Response(
                200, json={"code": 400, "message": "symbol not found", "status": "error"}
            )
        )
        job = DownloadJob(
            ticker="NOPE", start=date(2025, 1, 2), end=date(2025, 1, 2), provider="twelvedata"
        )
        with pytest.raises(ProviderError, match="symbol not found"):
            await download(job, config, api_key="k")


class TestPreflight:
    @respx.mock
    async def test_missing_key_fails_before_network(self, job, config):
        with pytest.raises(ConfigError, match="POLYGON_API_KEY"):
            await download(job, config)
        assert respx.calls.call_count == 0

    @respx.mock
    async def test_missing_twelvedata_key_named(self, config):
        job = DownloadJob(
            ticker="AAPL", start=date(2025, 1, 2), end=date(2025, 1, 2), provider="twelvedata"
        )
        with pytest.raises(ConfigError, match="TWELVEDATA_API_KEY"):
            await download(job, config)

    @respx.mock
    async def test_key_from_environment(self, job, config, monkeypatch, polygon_payload):
        monkeypatch.setenv("POLYGON_API_KEY", "env-key")
        route = respx.get(POLYGON_AAPL).mock(
            return_value=httpx.Response(200, json=polygon_payload)
        )
        await download(job, config)
        assert route.calls.last.request.url.params["apiKey"] == "env-key"

    @respx.mock
    async def test_split_with_json_fails_before_io(self, config, tmp_path):
        job = DownloadJob(
            ticker="AAPL",
            start=date(2025, 1, 2),
            end=date(2025, 1, 2),
            output_format="json",
            split_by_day=True,
        )
        with pytest.raises(ConfigError, match="split-by-day"):
            await download(job, config, api_key="k")
        assert respx.calls.call_count == 0
        assert not (tmp_path / "output").exists()


class TestSplitByDay:
    @respx.mock
    async def test_writes_day_files(self, config, tmp_path):
        day = 86_400_000
        jan_2 = 1735776000000
        respx.get(POLYGON_AAPL).mock(
            return_value=httpx.Response(
                200, json={"results": [_agg(jan_2), _agg(jan_2 + 60_000), _agg(jan_2 + day)]}
            )
        )
        job = DownloadJob(
            ticker="AAPL", start=date(2025, 1, 2), end=date(2025, 1, 3), split_by_day=True
        )
        result = await download(job, config, api_key="k")

        base = tmp_path / "output" / "2025" / "01"
        assert result.paths == [base / "AAPL_2025-01-02.csv", base / "AAPL_2025-01-03.csv"]
        assert result.bars_written == 3


class TestNonFiniteValues:
    @respx.mock
    async def test_non_finite_volume_fails_and_json_stays_standard(self, config):
        good = {
            "datetime": "2025-01-02 14:30:00",
            "open": "1", "high": "2", "low": "0.5", "close": "1.5", "volume": "3",
        }
        respx.get(TWELVEDATA).mock(
            side_effect=[
                httpx.Response(200, json={"values": [good], "next_page_token": "t2"}),
                httpx.Response(200, json={"values": [dict(good, volume="NaN")]}),
            ]
        )
        job = DownloadJob(
            ticker="AAPL",
            start=date(2025, 1, 2),
            end=date(2025, 1, 2),
            provider="twelvedata",
            output_format="json",
            out_path=Path(config.output.directory) / "td.json",
        )

        def reject_constant(name):
            raise ValueError(f"non-standard JSON constant {name}")

        with pytest.raises(ParseError, match="volume"):
            await download(job, config, api_key="k")
        data = json.loads(job.out_path.read_text(), parse_constant=reject_constant)
        assert [o["volume"] for o in data] == [3.0]
