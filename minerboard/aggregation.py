"""
aggregation.py - Read-only views over snapshots and the points ledger.

Builds the JSON bodies served by the worker list, worker detail, leaderboard
and summary endpoints. Nothing here writes to the store.
"""

import functools
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, List

import aiosqlite

from minerboard.errors import NotFound, StorageError
from minerboard.liveness import WorkerStatus, classify

if TYPE_CHECKING:
    from minerboard.storage import LedgerRepo, SnapshotRepo

logger = logging.getLogger("aggregation")

DETAIL_WINDOW_SEC = 24 * 3600
DETAIL_SNAPSHOT_LIMIT = 100
DETAIL_POINTS_LIMIT = 50
LEADERBOARD_LIMIT = 100
EXPECTED_REPORT_PERIOD = 300  # seconds per expected snapshot when computing uptime


def iso(ts: float) -> str:
    """Epoch seconds -> ISO-8601 UTC string with millisecond precision."""
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def uptime_percentage(snapshot_count: int, first_ts: float, last_ts: float) -> float:
    span = last_ts - first_ts
    expected = span / EXPECTED_REPORT_PERIOD
    if expected <= 0:
        return 0.0
    return round(snapshot_count / expected * 100, 2)


def _storage_guard(what: str):
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except aiosqlite.Error:
                logger.exception("Query failed while fetching %s", what)
                raise StorageError(f"Failed to fetch {what}")
        return wrapper
    return decorator


class AggregationService:
    def __init__(
        self,
        snapshot_repo: "SnapshotRepo",
        ledger_repo: "LedgerRepo",
        clock: Callable[[], float] = time.time,
    ):
        self._snapshots = snapshot_repo
        self._ledger = ledger_repo
        self._clock = clock

    @_storage_guard("workers")
    async def list_workers(self) -> List[dict]:
        now = self._clock()
        latest = await self._snapshots.latest_per_worker()
        points = await self._ledger.totals_by_worker()
        result = []
        for snap in latest:
            result.append({
                "worker": snap["worker"],
                "status": classify(snap["ts"], now).value,
                "hashrate1m": snap["hashrate_1m"],
                "hashrate10m": snap["hashrate_10m"],
                "totalAccepted": snap["max_accepted"],
                "totalRejected": snap["max_rejected"],
                "totalPoints": points.get(snap["worker"], 0),
                "lastSeenAt": iso(snap["ts"]),
            })
        return result

    @_storage_guard("worker details")
    async def get_worker_detail(self, worker: str) -> dict:
        now = self._clock()
        latest = await self._snapshots.latest(worker)
        if latest is None:
            raise NotFound("Worker not found")

        totals = await self._snapshots.totals(worker)
        total_points = await self._ledger.total_for(worker)
        snapshots = await self._snapshots.recent(
            worker, since=now - DETAIL_WINDOW_SEC, limit=DETAIL_SNAPSHOT_LIMIT,
        )
        entries = await self._ledger.history(worker, limit=DETAIL_POINTS_LIMIT)

        return {
            "worker": worker,
            "status": classify(latest["ts"], now).value,
            "currentHashrate": latest["hashrate_1m"],
            "totalAccepted": totals["max_accepted"],
            "totalRejected": totals["max_rejected"],
            "totalPoints": total_points,
            "lastSeenAt": iso(latest["ts"]),
            "recentSnapshots": [
                {
                    "ts": iso(s["ts"]),
                    "hashrate1m": s["hashrate_1m"],
                    "hashrate10m": s["hashrate_10m"],
                    "accepted": s["accepted"],
                    "rejected": s["rejected"],
                }
                for s in snapshots
            ],
            "recentPoints": [
                {"ts": iso(e["ts"]), "points": e["points"], "reason": e["reason"]}
                for e in entries
            ],
        }

    @_storage_guard("leaderboard")
    async def get_leaderboard(self, limit: int = LEADERBOARD_LIMIT) -> List[dict]:
        bounded = max(1, min(int(limit), LEADERBOARD_LIMIT))
        top = await self._ledger.top(limit=bounded)
        stats = await self._snapshots.stats_for(worker for worker, _ in top)
        board = []
        for rank, (worker, total_points) in enumerate(top, start=1):
            s = stats.get(worker)
            if s is None:
                # Ledger rows without snapshots cannot happen through ingest.
                total_hashes, avg_rate, uptime = 0, 0.0, 0.0
            else:
                total_hashes = s["max_total_hashes"] or 0
                avg_rate = s["avg_hashrate_10m"] or 0.0
                uptime = uptime_percentage(s["snapshot_count"], s["first_ts"], s["last_ts"])
            board.append({
                "rank": rank,
                "worker": worker,
                "totalPoints": total_points,
                "totalHashes": total_hashes,
                "averageHashrate": avg_rate,
                "uptimePercentage": uptime,
            })
        return board

    @_storage_guard("summary")
    async def get_summary(self) -> dict:
        now = self._clock()
        latest = await self._snapshots.latest_per_worker()
        counts = {status: 0 for status in WorkerStatus}
        total_hashrate = 0.0
        for snap in latest:
            status = classify(snap["ts"], now)
            counts[status] += 1
            if status is WorkerStatus.ACTIVE:
                total_hashrate += snap["hashrate_10m"]
        return {
            "totalWorkers": len(latest),
            "activeWorkers": counts[WorkerStatus.ACTIVE],
            "inactiveWorkers": counts[WorkerStatus.INACTIVE],
            "offlineWorkers": counts[WorkerStatus.OFFLINE],
            "totalHashrate": round(total_hashrate, 2),
            "totalPoints": await self._ledger.grand_total(),
            "totalSnapshots": await self._snapshots.count(),
        }
