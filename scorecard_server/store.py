import json
import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone

from .errors import CacheReadError, CacheWriteError

SCHEMA_VERSION = 2
SEGMENTS = ("mobile", "desktop")

log = logging.getLogger(__name__)

def parse_epoch(value: str) -> date:
    """Parse a dataset version stamp (YYYY-MM-DD)."""
    return date.fromisoformat(value)

def _utc_day(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")

@dataclass
class Snapshot:
    epoch: str
    segments: dict[str, dict[str, float | None]]  # segment -> metric -> value
    report_scores: dict[str, float | None] | None = None
    schema_version: int = SCHEMA_VERSION

    def to_json(self) -> dict:
        payload: dict = {
            "schemaVersion": self.schema_version,
            "latestFetchDate": self.epoch,
        }
        for name, metrics in self.segments.items():
            payload[name] = metrics
        if self.report_scores is not None:
            payload["lighthouse"] = self.report_scores
        return payload

    @classmethod
    def from_json(cls, payload: object) -> "Snapshot":
        if not isinstance(payload, dict):
            raise CacheReadError("snapshot is not a JSON object")
        version = payload.get("schemaVersion")
        if version != SCHEMA_VERSION:
            raise CacheReadError(f"unsupported snapshot schema version {version!r}")
        epoch = payload.get("latestFetchDate")
        try:
            parse_epoch(epoch)
        except (TypeError, ValueError) as e:
            raise CacheReadError(f"invalid latestFetchDate {epoch!r}") from e

        segments: dict[str, dict[str, float | None]] = {}
        for name in SEGMENTS:
            metrics = payload.get(name)
            if not isinstance(metrics, dict):
                raise CacheReadError(f"segment '{name}' missing or malformed")
            segments[name] = metrics

        scores = payload.get("lighthouse")
        if scores is not None and not isinstance(scores, dict):
            raise CacheReadError("'lighthouse' is not a JSON object")
        return cls(epoch=epoch, segments=segments, report_scores=scores, schema_version=version)

class SnapshotFile:
    """
    The last known-good Snapshot on local disk plus an in-memory copy of it.

    The file's mtime doubles as the "already probed today" marker, which is a
    separate clock from the snapshot's epoch. Reads never raise: a missing or
    corrupt file is the same as no cache. Writes replace the file atomically.
    """
    def __init__(self, path: str, clock: Callable[[], float] = time.time):
        self.path = path
        self.clock = clock
        self._content: Snapshot | None = None
        self._loaded = False
        # last check time, kept in memory for when the file cannot carry it
        self._checked_at: float | None = None

    def load(self) -> Snapshot | None:
        try:
            self._content = self._read()
        except CacheReadError as e:
            log.warning(
                "snapshot unavailable",
                extra={"event": "cache.read_error", "extra_fields": {"path": self.path, "error": str(e)}},
            )
            self._content = None
        self._loaded = True
        return self._content

    def _read(self) -> Snapshot:
        try:
            with open(self.path, encoding="utf-8") as f:
                payload = json.load(f)
        except FileNotFoundError as e:
            raise CacheReadError("no snapshot file") from e
        except (OSError, ValueError) as e:
            raise CacheReadError(f"unreadable snapshot: {e}") from e
        return Snapshot.from_json(payload)

    def current(self) -> Snapshot | None:
        if not self._loaded:
            self.load()
        return self._content

    def exists(self) -> bool:
        """
        True when a snapshot is held in memory. After a failed persist this
        is the fresh in-process copy even though load() from disk would
        return None.
        """
        return self.current() is not None

    def should_probe_for_new_epoch(self) -> bool:
        """True at most once per UTC calendar day, and always when there is no snapshot."""
        if not self.exists():
            return True
        try:
            mtime = os.stat(self.path).st_mtime
        except OSError:
            # in-memory only (the last write failed)
            if self._checked_at is None:
                return True
            mtime = self._checked_at
        return _utc_day(self.clock()) > _utc_day(mtime)

    def needs_update(self, candidate_epoch: str) -> bool:
        snap = self.current()
        if snap is None:
            return True
        return parse_epoch(snap.epoch) < parse_epoch(candidate_epoch)

    def write(self, snapshot: Snapshot) -> None:
        log.info(
            "caching warehouse results",
            extra={"event": "cache.write", "extra_fields": {"path": self.path, "epoch": snapshot.epoch}},
        )
        self._content = snapshot
        self._loaded = True
        self._checked_at = self.clock()
        try:
            self._persist(snapshot)
        except CacheWriteError as e:
            log.error(
                "snapshot not persisted",
                extra={"event": "cache.write_error", "extra_fields": {"path": self.path, "error": str(e)}},
            )

    def _persist(self, snapshot: Snapshot) -> None:
        tmp = f"{self.path}.{os.getpid()}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_json(), f, indent=2)
                f.write("\n")
            os.replace(tmp, self.path)
            now = self.clock()
            os.utime(self.path, (now, now))
        except OSError as e:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise CacheWriteError(str(e)) from e

    def touch(self) -> None:
        """Mark the file as probed now without changing its content."""
        now = self.clock()
        self._checked_at = now
        if not os.path.exists(self.path):
            return
        try:
            os.utime(self.path, (now, now))
        except OSError as e:
            log.warning(
                "could not touch snapshot",
                extra={"event": "cache.touch_error", "extra_fields": {"path": self.path, "error": str(e)}},
            )
