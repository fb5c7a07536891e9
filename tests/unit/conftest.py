"""Shared fixtures for the minerboard unit tests."""

import time

import aiosqlite
import pytest
import pytest_asyncio

from minerboard.storage import LedgerRepo, SnapshotRepo, SCHEMA_SQL, SCHEMA_VERSION

T0 = 1_700_000_000.0


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def db():
    conn = await aiosqlite.connect(":memory:")
    await conn.executescript(SCHEMA_SQL)
    await conn.execute(
        "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
        (SCHEMA_VERSION, time.time()),
    )
    await conn.commit()
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def snapshots(db):
    return SnapshotRepo(db)


@pytest_asyncio.fixture
async def ledger(db):
    return LedgerRepo(db)
