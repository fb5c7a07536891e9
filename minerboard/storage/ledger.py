from typing import List

import aiosqlite


class LedgerRepo:
    """Insert + read queries for the points_ledger table. Rows are never updated."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def append(self, worker: str, points: int, reason: str, ts: float) -> dict:
        cursor = await self._db.execute(
            "INSERT INTO points_ledger (worker, points, reason, ts) VALUES (?, ?, ?, ?)",
            (worker, points, reason, ts),
        )
        entry_id = cursor.lastrowid
        await cursor.close()
        await self._db.commit()
        return {
            "id": entry_id,
            "worker": worker,
            "points": points,
            "reason": reason,
            "ts": ts,
        }

    async def total_for(self, worker: str) -> int:
        async with self._db.execute(
            "SELECT COALESCE(SUM(points), 0) FROM points_ledger WHERE worker = ?",
            (worker,),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def history(self, worker: str, limit: int = 50) -> List[dict]:
        results = []
        async with self._db.execute(
            "SELECT id, worker, points, reason, ts FROM points_ledger "
            "WHERE worker = ? ORDER BY ts DESC, id DESC LIMIT ?",
            (worker, limit),
        ) as cursor:
            async for row in cursor:
                results.append({
                    "id": row[0],
                    "worker": row[1],
                    "points": row[2],
                    "reason": row[3],
                    "ts": row[4],
                })
        return results

    async def totals_by_worker(self) -> dict:
        results = {}
        async with self._db.execute(
            "SELECT worker, SUM(points) FROM points_ledger GROUP BY worker"
        ) as cursor:
            async for row in cursor:
                results[row[0]] = int(row[1])
        return results

    async def top(self, limit: int = 100) -> List[tuple]:
        """(worker, total_points) for workers with a positive total, highest first."""
        results = []
        async with self._db.execute(
            "SELECT worker, SUM(points) AS total FROM points_ledger "
            "GROUP BY worker HAVING total > 0 "
            "ORDER BY total DESC, worker ASC LIMIT ?",
            (limit,),
        ) as cursor:
            async for row in cursor:
                results.append((row[0], int(row[1])))
        return results

    async def grand_total(self) -> int:
        async with self._db.execute(
            "SELECT COALESCE(SUM(points), 0) FROM points_ledger"
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0
