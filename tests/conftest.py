"""Shared fixtures: a scripted warehouse, a controllable clock and sample rows."""

import asyncio
from datetime import datetime, timezone

import pytest

from scorecard_server.errors import RemoteQueryError
from scorecard_server.queries import MEDIAN_COLUMNS
from scorecard_server.store import Snapshot, SnapshotFile


def utc_ts(year: int, month: int, day: int, hour: int = 12) -> float:
    return datetime(year, month, day, hour, tzinfo=timezone.utc).timestamp()


class Clock:
    def __init__(self, ts: float):
        self.ts = ts

    def __call__(self) -> float:
        return self.ts


def median_row(scale: float = 1.0) -> dict:
    return {alias: 100.4 * scale for _, alias in MEDIAN_COLUMNS}


class FakeWarehouse:
    """Scripted stand-in for the remote warehouse that records every call."""

    def __init__(self, latest: str = "2021-02-01"):
        self.latest = latest
        self.calls: list[tuple[str, str]] = []
        self.fail: set[str] = set()
        self.delays: dict[str, float] = {}
        self.cancelled: list[str] = []
        self.closed = False

    async def _answer(self, family: str, segment: str, row: dict) -> dict:
        self.calls.append((family, segment))
        key = f"{family}.{segment}"
        try:
            await asyncio.sleep(self.delays.get(key, 0))
        except asyncio.CancelledError:
            self.cancelled.append(key)
            raise
        if key in self.fail:
            raise RemoteQueryError(f"{key}: HTTP 500: boom", family=key, status=500)
        return row

    async def query_latest_epoch(self, segment: str) -> str:
        self.calls.append(("latest_epoch", segment))
        if "latest_epoch" in self.fail:
            raise RemoteQueryError("latest_epoch: HTTP 503: unavailable", family="latest_epoch", status=503)
        return self.latest

    async def query_aggregate_metrics(self, segment: str, epoch: str) -> dict:
        row = median_row(0.9 if segment == "mobile" else 1.0)
        # reversed column order, as a remote could return it
        return await self._answer("medians", segment, dict(reversed(list(row.items()))))

    async def query_average_metrics(self, segment: str, epoch: str) -> dict:
        row = {f"avg_{alias}": 120.5 for _, alias in MEDIAN_COLUMNS}
        return await self._answer("averages", segment, row)

    async def query_report_scores(self, segment: str, epoch: str) -> dict:
        row = {"perfScore": 0.41, "pwaScore": 0.32, "bestPracticesScore": 0.71, "a11yScore": 0.68}
        return await self._answer("lighthouse", segment, row)

    async def aclose(self):
        self.closed = True

    def aggregate_calls(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] != "latest_epoch"]


def make_snapshot(epoch: str = "2021-01-15") -> Snapshot:
    return Snapshot(
        epoch=epoch,
        segments={
            "mobile": {"css_bytes": 55000, "js_requests": 19},
            "desktop": {"css_bytes": 61000, "js_requests": 21},
        },
        report_scores={"a11yScore": 0.6, "perfScore": 0.4},
    )


@pytest.fixture
def clock() -> Clock:
    return Clock(utc_ts(2021, 2, 1))


@pytest.fixture
def cache_path(tmp_path) -> str:
    return str(tmp_path / ".bigquery_cache.json")


@pytest.fixture
def warehouse() -> FakeWarehouse:
    return FakeWarehouse()


@pytest.fixture
def stale_cache(cache_path, clock) -> SnapshotFile:
    """A cache holding the 2021-01-15 dataset, last probed the day before `clock`."""
    seed = SnapshotFile(cache_path, clock=Clock(utc_ts(2021, 1, 31)))
    seed.write(make_snapshot("2021-01-15"))
    cache = SnapshotFile(cache_path, clock=clock)
    cache.load()
    return cache
