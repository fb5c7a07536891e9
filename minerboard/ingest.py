"""
ingest.py - Snapshot ingestion.

Validates a worker report, persists it as an immutable snapshot stamped
with server time, then runs the points ledger for it. Reports for the same
worker are serialized so two concurrent submissions can never diff against
the same previous snapshot and award the same shares twice.

The ledger step is a best-effort secondary effect: if it fails the snapshot
stays recorded and the caller is told no points were awarded.
"""

import asyncio
import logging
import math
import time
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

import aiosqlite

from minerboard.errors import StorageError, ValidationError
from minerboard.points import Award

if TYPE_CHECKING:
    from minerboard.points import PointsLedger
    from minerboard.storage import SnapshotRepo

logger = logging.getLogger("ingest")

MAX_WORKER_ID_LENGTH = 256
# Largest value a SQLite INTEGER column can hold.
MAX_COUNTER = 2**63 - 1


@dataclass(frozen=True)
class IngestResult:
    snapshot_id: int
    worker: str
    ts: float
    award: Optional[Award] = None

    @property
    def points_awarded(self) -> Optional[int]:
        return self.award.points if self.award else None


def _check_worker(worker) -> str:
    if not isinstance(worker, str) or not worker.strip():
        raise ValidationError("Worker ID is required")
    if len(worker) > MAX_WORKER_ID_LENGTH:
        raise ValidationError(f"Worker ID must be at most {MAX_WORKER_ID_LENGTH} characters")
    return worker


def _check_rate(name: str, value) -> float:
    if value is None:
        raise ValidationError("Hashrate data is required")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"{name} must be a non-negative number")
    return value


def _check_counter(name: str, value) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be an integer")
        value = int(value)
    if value < 0:
        raise ValidationError(f"{name} must be non-negative")
    if value > MAX_COUNTER:
        raise ValidationError(f"{name} must be at most {MAX_COUNTER}")
    return value


class SnapshotIngest:
    """Write path: snapshot insert followed by the points award, per worker in order."""

    def __init__(
        self,
        snapshot_repo: "SnapshotRepo",
        points: "PointsLedger",
        clock: Callable[[], float] = time.time,
    ):
        self._snapshots = snapshot_repo
        self._points = points
        self._clock = clock
        self._last_ts = 0.0
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, worker: str) -> asyncio.Lock:
        lock = self._locks.get(worker)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[worker] = lock
        return lock

    def _stamp(self) -> float:
        # Ingest timestamps never go backwards, even if the wall clock does.
        ts = max(self._clock(), self._last_ts)
        self._last_ts = ts
        return ts

    async def submit(
        self,
        worker,
        hashrate1m,
        hashrate10m,
        accepted=0,
        rejected=0,
        total_hashes=0,
    ) -> IngestResult:
        worker = _check_worker(worker)
        hashrate1m = _check_rate("hashrate1m", hashrate1m)
        hashrate10m = _check_rate("hashrate10m", hashrate10m)
        accepted = _check_counter("accepted", accepted)
        rejected = _check_counter("rejected", rejected)
        total_hashes = _check_counter("totalHashes", total_hashes)

        lock = self._lock_for(worker)
        async with lock:
            ts = self._stamp()
            try:
                snapshot_id = await self._snapshots.insert(
                    worker, hashrate1m, hashrate10m, accepted, rejected, total_hashes, ts,
                )
            except aiosqlite.Error:
                logger.exception("Snapshot insert failed for worker %s", worker)
                raise StorageError("Failed to record contribution")

            try:
                award = await self._points.award_if_eligible(worker, accepted, snapshot_id)
            except Exception:
                logger.exception(
                    "Points calculation failed for worker %s (snapshot %d)", worker, snapshot_id,
                )
                award = None

        if award:
            logger.info("Snapshot %d for %s: +%d points", snapshot_id, worker, award.points)
        else:
            logger.debug("Snapshot %d for %s recorded", snapshot_id, worker)
        return IngestResult(snapshot_id=snapshot_id, worker=worker, ts=ts, award=award)

    async def submit_many(self, reports: Iterable[dict]) -> dict:
        """Ingest a batch of reports (cron path). Invalid reports are skipped and logged."""
        created = 0
        points = 0
        processed = 0
        for report in reports:
            processed += 1
            try:
                result = await self.submit(
                    report.get("worker"),
                    report.get("hashrate1m"),
                    report.get("hashrate10m"),
                    accepted=report.get("accepted"),
                    rejected=report.get("rejected"),
                    total_hashes=report.get("totalHashes"),
                )
            except ValidationError as e:
                logger.warning("Skipping report for %r: %s", report.get("worker"), e.message)
                continue
            created += 1
            points += result.points_awarded or 0
        return {
            "snapshots_created": created,
            "points_awarded": points,
            "workers_processed": processed,
        }
