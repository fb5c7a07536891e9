"""
points.py - Points ledger.

Awards one point per newly accepted share. The award for a snapshot is the
difference between its cumulative ``accepted`` counter and that of the
worker's immediately preceding snapshot. A worker's first snapshot earns
nothing (no baseline), and a zero or negative delta earns nothing: this
absorbs client restarts that reset their counters to zero.
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional

if TYPE_CHECKING:
    from minerboard.storage import LedgerRepo, SnapshotRepo

logger = logging.getLogger("points")

HISTORY_LIMIT = 50


@dataclass(frozen=True)
class Award:
    points: int
    reason: str


class PointsLedger:
    """Derives ledger entries from snapshot deltas. Sole writer of the ledger."""

    def __init__(
        self,
        snapshot_repo: "SnapshotRepo",
        ledger_repo: "LedgerRepo",
        clock: Callable[[], float] = time.time,
    ):
        self._snapshots = snapshot_repo
        self._ledger = ledger_repo
        self._clock = clock

    async def award_if_eligible(
        self, worker: str, current_accepted: int, snapshot_id: Optional[int] = None,
    ) -> Optional[Award]:
        """Append a ledger entry for the share delta of the snapshot just written.

        ``snapshot_id`` pins the comparison to the row preceding that snapshot.
        Without it the second-newest row of the worker is used.
        """
        previous = await self._snapshots.previous(worker, before_id=snapshot_id)
        if previous is None:
            return None

        delta = current_accepted - previous["accepted"]
        if delta <= 0:
            if delta < 0:
                logger.info(
                    "Worker %s accepted counter went back (%d -> %d), treating as restart",
                    worker, previous["accepted"], current_accepted,
                )
            return None

        award = Award(points=delta, reason=f"Accepted {delta} shares")
        await self._ledger.append(worker, award.points, award.reason, self._clock())
        logger.debug("Awarded %d points to %s", award.points, worker)
        return award

    async def total_points(self, worker: str) -> int:
        return await self._ledger.total_for(worker)

    async def history(self, worker: str, limit: int = HISTORY_LIMIT) -> List[dict]:
        return await self._ledger.history(worker, limit=limit)
