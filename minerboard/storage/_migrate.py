import logging
import time

import aiosqlite

from ._schema import SCHEMA_SQL, SCHEMA_VERSION

logger = logging.getLogger("storage")


async def run_migrations(db):
    current_version = 0
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cursor:
            row = await cursor.fetchone()
            if row and row[0] is not None:
                current_version = row[0]
    except aiosqlite.OperationalError:
        # Fresh database: schema_version does not exist yet.
        logger.debug("No schema_version table, starting from v0")

    if current_version < SCHEMA_VERSION:
        logger.info("Migrating database from v%d to v%d", current_version, SCHEMA_VERSION)
        await db.executescript(SCHEMA_SQL)

        await db.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (SCHEMA_VERSION, time.time()),
        )
        await db.commit()
        logger.info("Migration complete (v%d)", SCHEMA_VERSION)
    else:
        logger.debug("Database schema up to date (v%d)", current_version)
