import asyncio
import logging
import time
from collections.abc import Awaitable

from .errors import RemoteQueryError
from .formatting import assemble_snapshot
from .store import SEGMENTS, SnapshotFile
from .warehouse import Row, Warehouse

async def gather_all(named: dict[str, Awaitable[Row]]) -> dict[str, Row]:
    """Run the awaitables concurrently; the first failure cancels the rest and is re-raised."""
    tasks = {name: asyncio.ensure_future(aw) for name, aw in named.items()}
    try:
        await asyncio.gather(*tasks.values())
    except BaseException:
        for t in tasks.values():
            t.cancel()
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        raise
    return {name: t.result() for name, t in tasks.items()}

class FreshnessGate:
    """
    Serves the cached Snapshot and refreshes it from the warehouse when a
    newer dataset is published.

    Two independent checks: the snapshot file's mtime limits the "latest
    epoch" probe to once per UTC day, and a full refresh only happens when the
    probed epoch is strictly newer than the cached one.

    Concurrent callers are not coordinated: two overlapping calls may both
    refresh and both write (last write wins).
    """
    def __init__(
        self,
        cache: SnapshotFile,
        warehouse: Warehouse,
        *,
        probe_segment: str = "desktop",
        score_segment: str = "mobile",
        include_averages: bool = False,
    ):
        self.cache = cache
        self.warehouse = warehouse
        self.probe_segment = probe_segment
        self.score_segment = score_segment
        self.include_averages = include_averages
        self._log = logging.getLogger(__name__)
        self.last_refresh_ms: int | None = None

    async def current_epoch(self) -> str:
        if not self.cache.should_probe_for_new_epoch():
            return self.cache.current().epoch

        # Mark the probe before sending it so a failing warehouse is asked at
        # most once per day.
        self.cache.touch()
        epoch = await self.warehouse.query_latest_epoch(self.probe_segment)
        snap = self.cache.current()
        self._log.info(
            "probed latest epoch",
            extra={"event": "cache.probe", "extra_fields": {
                "segment": self.probe_segment,
                "latest": epoch,
                "cached": snap.epoch if snap else None,
            }},
        )
        return epoch

    async def get_all_data(self) -> dict:
        epoch = await self.current_epoch()

        if not self.cache.needs_update(epoch):
            self._log.debug("serving cached snapshot", extra={"event": "cache.hit", "extra_fields": {"epoch": epoch}})
            return self.cache.current().to_json()

        t0 = time.time()
        try:
            snapshot = await self._refresh(epoch)
        except RemoteQueryError as e:
            self._log.error(
                "refresh failed",
                extra={"event": "cache.refresh_failed", "extra_fields": {
                    "epoch": epoch,
                    "family": e.family,
                    "error": str(e),
                }},
            )
            raise
        self.last_refresh_ms = int((time.time() - t0) * 1000)
        self.cache.write(snapshot)
        self._log.info(
            "snapshot refreshed",
            extra={"event": "cache.refresh", "extra_fields": {
                "epoch": epoch,
                "refresh_ms": self.last_refresh_ms,
            }},
        )
        return snapshot.to_json()

    async def _refresh(self, epoch: str):
        wh = self.warehouse
        jobs: dict[str, Awaitable[Row]] = {}
        for segment in SEGMENTS:
            jobs[f"medians.{segment}"] = wh.query_aggregate_metrics(segment, epoch)
            if self.include_averages:
                jobs[f"averages.{segment}"] = wh.query_average_metrics(segment, epoch)
        jobs["lighthouse"] = wh.query_report_scores(self.score_segment, epoch)

        results = await gather_all(jobs)

        medians = {s: results[f"medians.{s}"] for s in SEGMENTS}
        averages = {s: results[f"averages.{s}"] for s in SEGMENTS} if self.include_averages else None
        return assemble_snapshot(epoch, medians, averages, results["lighthouse"])
