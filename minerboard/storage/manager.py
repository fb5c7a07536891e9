import logging
from typing import Optional

import aiosqlite

from ._migrate import run_migrations
from .ledger import LedgerRepo
from .snapshots import SnapshotRepo

logger = logging.getLogger("storage")


class StorageManager:
    """Top-level manager: opens the database, runs migrations, exposes repos."""

    def __init__(self, db_path: str = "minerboard.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None
        self.snapshots: Optional[SnapshotRepo] = None
        self.ledger: Optional[LedgerRepo] = None

    async def initialize(self):
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await run_migrations(self._db)

        self.snapshots = SnapshotRepo(self._db)
        self.ledger = LedgerRepo(self._db)

        logger.info("Storage initialized: %s", self.db_path)

    async def close(self):
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Storage closed")
