from typing import Dict, Iterable, List, Optional

import aiosqlite

_COLUMNS = "id, worker, hashrate_1m, hashrate_10m, accepted, rejected, total_hashes, ts"


def _row_to_snapshot(row) -> dict:
    return {
        "id": row[0],
        "worker": row[1],
        "hashrate_1m": row[2],
        "hashrate_10m": row[3],
        "accepted": row[4],
        "rejected": row[5],
        "total_hashes": row[6],
        "ts": row[7],
    }


class SnapshotRepo:
    """Append-only access to the workers_snapshot table.

    Rows for one worker are ordered by (ts, id); ids break ties between
    snapshots stamped within the same clock tick.
    """

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self,
        worker: str,
        hashrate_1m: float,
        hashrate_10m: float,
        accepted: int,
        rejected: int,
        total_hashes: int,
        ts: float,
    ) -> int:
        cursor = await self._db.execute(
            "INSERT INTO workers_snapshot "
            "(worker, hashrate_1m, hashrate_10m, accepted, rejected, total_hashes, ts) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (worker, hashrate_1m, hashrate_10m, accepted, rejected, total_hashes, ts),
        )
        snapshot_id = cursor.lastrowid
        await cursor.close()
        await self._db.commit()
        return snapshot_id

    async def latest(self, worker: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM workers_snapshot WHERE worker = ? "
            "ORDER BY ts DESC, id DESC LIMIT 1",
            (worker,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_snapshot(row) if row else None

    async def previous(self, worker: str, before_id: Optional[int] = None) -> Optional[dict]:
        """Newest snapshot preceding ``before_id``, or the second-newest row when not given."""
        if before_id is not None:
            sql = (f"SELECT {_COLUMNS} FROM workers_snapshot "
                   "WHERE worker = ? AND id < ? ORDER BY ts DESC, id DESC LIMIT 1")
            params: tuple = (worker, before_id)
        else:
            sql = (f"SELECT {_COLUMNS} FROM workers_snapshot "
                   "WHERE worker = ? ORDER BY ts DESC, id DESC LIMIT 1 OFFSET 1")
            params = (worker,)
        async with self._db.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return _row_to_snapshot(row) if row else None

    async def recent(self, worker: str, since: float, limit: int = 100) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM workers_snapshot "
            "WHERE worker = ? AND ts > ? ORDER BY ts DESC, id DESC LIMIT ?",
            (worker, since, limit),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_snapshot(row))
        return results

    async def totals(self, worker: str) -> Optional[dict]:
        """Lifetime aggregates for one worker, or None if it never reported."""
        async with self._db.execute(
            "SELECT COUNT(*), MAX(accepted), MAX(rejected), MAX(total_hashes), "
            "AVG(hashrate_10m), MIN(ts), MAX(ts) "
            "FROM workers_snapshot WHERE worker = ?",
            (worker,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None or row[0] == 0:
            return None
        return {
            "snapshot_count": row[0],
            "max_accepted": row[1],
            "max_rejected": row[2],
            "max_total_hashes": row[3],
            "avg_hashrate_10m": row[4],
            "first_ts": row[5],
            "last_ts": row[6],
        }

    async def latest_per_worker(self) -> List[dict]:
        """Newest snapshot of every worker joined with its lifetime maxima, newest first."""
        results = []
        async with self._db.execute(
            "WITH ranked AS ("
            "  SELECT id, worker, hashrate_1m, hashrate_10m, accepted, rejected, total_hashes, ts, "
            "         ROW_NUMBER() OVER (PARTITION BY worker ORDER BY ts DESC, id DESC) AS rn "
            "  FROM workers_snapshot"
            "), totals AS ("
            "  SELECT worker, MAX(accepted) AS max_accepted, MAX(rejected) AS max_rejected "
            "  FROM workers_snapshot GROUP BY worker"
            ") "
            "SELECT r.id, r.worker, r.hashrate_1m, r.hashrate_10m, r.accepted, r.rejected, "
            "       r.total_hashes, r.ts, t.max_accepted, t.max_rejected "
            "FROM ranked r JOIN totals t ON r.worker = t.worker "
            "WHERE r.rn = 1 ORDER BY r.ts DESC, r.id DESC"
        ) as cursor:
            async for row in cursor:
                snap = _row_to_snapshot(row)
                snap["max_accepted"] = row[8]
                snap["max_rejected"] = row[9]
                results.append(snap)
        return results

    async def stats_for(self, workers: Iterable[str]) -> Dict[str, dict]:
        """Leaderboard aggregates keyed by worker for the given ids."""
        ids = list(workers)
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        results = {}
        async with self._db.execute(
            "SELECT worker, COUNT(*), MAX(total_hashes), AVG(hashrate_10m), MIN(ts), MAX(ts) "
            f"FROM workers_snapshot WHERE worker IN ({placeholders}) GROUP BY worker",
            ids,
        ) as cursor:
            async for row in cursor:
                results[row[0]] = {
                    "snapshot_count": row[1],
                    "max_total_hashes": row[2],
                    "avg_hashrate_10m": row[3],
                    "first_ts": row[4],
                    "last_ts": row[5],
                }
        return results

    async def count(self, worker: Optional[str] = None) -> int:
        if worker is None:
            sql, params = "SELECT COUNT(*) FROM workers_snapshot", ()
        else:
            sql, params = "SELECT COUNT(*) FROM workers_snapshot WHERE worker = ?", (worker,)
        async with self._db.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
