"""
test_ingest.py - Snapshot ingest: validation, stamping, award wiring and
per-worker serialization.
"""

import asyncio

import aiosqlite
import pytest

from minerboard.errors import StorageError, ValidationError
from minerboard.ingest import MAX_COUNTER, SnapshotIngest
from minerboard.points import PointsLedger

pytestmark = pytest.mark.asyncio


@pytest.fixture
def points(snapshots, ledger, clock):
    return PointsLedger(snapshots, ledger, clock=clock)


@pytest.fixture
def ingest(snapshots, points, clock):
    return SnapshotIngest(snapshots, points, clock=clock)


class TestSubmit:

    async def test_first_report(self, ingest, snapshots, clock):
        result = await ingest.submit("w1", 120.5, 118.0, accepted=10, rejected=1, total_hashes=10000)
        assert result.snapshot_id > 0
        assert result.points_awarded is None
        assert result.ts == clock.now
        stored = await snapshots.latest("w1")
        assert stored["hashrate_1m"] == 120.5
        assert stored["total_hashes"] == 10000

    async def test_second_report_awards_delta(self, ingest, clock):
        await ingest.submit("w1", 100, 100, accepted=10)
        clock.advance(5)
        result = await ingest.submit("w1", 100, 100, accepted=25)
        assert result.points_awarded == 15
        assert result.award.reason == "Accepted 15 shares"

    async def test_counters_default_to_zero(self, ingest, snapshots):
        await ingest.submit("w1", 1.0, 1.0, accepted=None, rejected=None, total_hashes=None)
        stored = await snapshots.latest("w1")
        assert (stored["accepted"], stored["rejected"], stored["total_hashes"]) == (0, 0, 0)

    async def test_integral_float_counter_accepted(self, ingest, snapshots):
        await ingest.submit("w1", 1.0, 1.0, accepted=12.0)
        assert (await snapshots.latest("w1"))["accepted"] == 12

    async def test_timestamps_never_go_backwards(self, ingest, clock):
        first = await ingest.submit("w1", 1, 1)
        clock.advance(-30)
        second = await ingest.submit("w1", 1, 1)
        assert second.ts >= first.ts


class TestValidation:

    @pytest.mark.parametrize("worker", [None, "", "   ", 42, "x" * 257])
    async def test_bad_worker(self, ingest, snapshots, worker):
        with pytest.raises(ValidationError):
            await ingest.submit(worker, 1.0, 1.0)
        assert await snapshots.count() == 0

    async def test_missing_worker_message(self, ingest):
        with pytest.raises(ValidationError, match="Worker ID is required"):
            await ingest.submit(None, 1.0, 1.0)

    @pytest.mark.parametrize("rates", [(None, 1.0), (1.0, None)])
    async def test_missing_hashrate(self, ingest, rates):
        with pytest.raises(ValidationError, match="Hashrate data is required"):
            await ingest.submit("w1", *rates)

    @pytest.mark.parametrize("rate", [-1.0, float("nan"), float("inf"), "fast", True])
    async def test_bad_hashrate(self, ingest, rate):
        with pytest.raises(ValidationError):
            await ingest.submit("w1", rate, 1.0)

    @pytest.mark.parametrize("accepted", [-1, 1.5, "10", False, MAX_COUNTER + 1, 1e30])
    async def test_bad_counter(self, ingest, accepted):
        with pytest.raises(ValidationError):
            await ingest.submit("w1", 1.0, 1.0, accepted=accepted)

    async def test_oversized_total_hashes(self, ingest, snapshots):
        with pytest.raises(ValidationError):
            await ingest.submit("w1", 1.0, 1.0, total_hashes=MAX_COUNTER + 1)
        assert await snapshots.count() == 0

    async def test_largest_counter_accepted(self, ingest, snapshots):
        await ingest.submit("w1", 1.0, 1.0, accepted=MAX_COUNTER, total_hashes=MAX_COUNTER)
        latest = await snapshots.latest("w1")
        assert latest["accepted"] == MAX_COUNTER

    async def test_zero_hashrate_allowed(self, ingest):
        result = await ingest.submit("w1", 0, 0.0)
        assert result.snapshot_id > 0


class TestFailures:

    async def test_points_failure_keeps_snapshot(self, snapshots, clock):
        class BrokenPoints:
            async def award_if_eligible(self, *args, **kwargs):
                raise RuntimeError("ledger down")

        ingest = SnapshotIngest(snapshots, BrokenPoints(), clock=clock)
        await ingest.submit("w1", 1, 1, accepted=1)
        result = await ingest.submit("w1", 1, 1, accepted=50)
        assert result.award is None
        assert await snapshots.count("w1") == 2

    async def test_insert_failure_is_storage_error(self, points, clock):
        class BrokenSnapshots:
            async def insert(self, *args):
                raise aiosqlite.OperationalError("disk I/O error")

        ingest = SnapshotIngest(BrokenSnapshots(), points, clock=clock)
        with pytest.raises(StorageError):
            await ingest.submit("w1", 1, 1)


class TestConcurrency:

    async def test_concurrent_reports_do_not_double_award(self, ingest, ledger):
        await ingest.submit("w1", 1, 1, accepted=0)
        results = await asyncio.gather(*[
            ingest.submit("w1", 1, 1, accepted=n) for n in (10, 20, 30, 40)
        ])
        assert sum(r.points_awarded or 0 for r in results) == 40
        assert await ledger.total_for("w1") == 40

    async def test_duplicate_concurrent_reports_award_once(self, ingest, ledger):
        await ingest.submit("w1", 1, 1, accepted=100)
        await asyncio.gather(*[ingest.submit("w1", 1, 1, accepted=150) for _ in range(5)])
        assert await ledger.total_for("w1") == 50


class TestSubmitMany:

    async def test_batch_counts(self, ingest, clock):
        await ingest.submit("w1", 1, 1, accepted=5)
        clock.advance(60)
        stats = await ingest.submit_many([
            {"worker": "w1", "hashrate1m": 1, "hashrate10m": 1, "accepted": 25, "totalHashes": 30},
            {"worker": "w2", "hashrate1m": 2, "hashrate10m": 2, "accepted": 7},
            {"worker": "", "hashrate1m": 1, "hashrate10m": 1},
        ])
        assert stats == {"snapshots_created": 2, "points_awarded": 20, "workers_processed": 3}

    async def test_empty_batch(self, ingest):
        stats = await ingest.submit_many([])
        assert stats == {"snapshots_created": 0, "points_awarded": 0, "workers_processed": 0}

    async def test_oversized_report_skipped(self, ingest, snapshots):
        stats = await ingest.submit_many([
            {"worker": "w1", "hashrate1m": 1, "hashrate10m": 1, "accepted": MAX_COUNTER + 1},
            {"worker": "w2", "hashrate1m": 1, "hashrate10m": 1, "accepted": 3},
        ])
        assert stats == {"snapshots_created": 1, "points_awarded": 0, "workers_processed": 2}
        assert await snapshots.latest("w1") is None
        assert (await snapshots.latest("w2"))["accepted"] == 3
