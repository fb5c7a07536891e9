SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at REAL NOT NULL
);

-- Worker snapshots: one row per report, append-only
CREATE TABLE IF NOT EXISTS workers_snapshot (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    worker       TEXT NOT NULL,
    hashrate_1m  REAL NOT NULL DEFAULT 0.0,
    hashrate_10m REAL NOT NULL DEFAULT 0.0,
    accepted     INTEGER NOT NULL DEFAULT 0,
    rejected     INTEGER NOT NULL DEFAULT 0,
    total_hashes INTEGER NOT NULL DEFAULT 0,
    ts           REAL NOT NULL
);

-- Points ledger: one row per positive accepted-share delta, append-only
CREATE TABLE IF NOT EXISTS points_ledger (
    id     INTEGER PRIMARY KEY AUTOINCREMENT,
    worker TEXT NOT NULL,
    points INTEGER NOT NULL CHECK (points > 0),
    reason TEXT NOT NULL DEFAULT '',
    ts     REAL NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_snapshot_worker_ts ON workers_snapshot(worker, ts);
CREATE INDEX IF NOT EXISTS idx_snapshot_ts ON workers_snapshot(ts);
CREATE INDEX IF NOT EXISTS idx_ledger_worker_ts ON points_ledger(worker, ts);
"""
