"""
liveness.py - Worker liveness classification.

A worker's status is a pure function of the time elapsed since its newest
snapshot. Timestamps are epoch seconds (floats), as stored by the snapshot
repository.
"""

from enum import Enum

ACTIVE_THRESHOLD = 60.0  # seconds since last snapshot
OFFLINE_THRESHOLD = 300.0


class WorkerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OFFLINE = "offline"


def classify(last_seen_at: float, now: float) -> WorkerStatus:
    """Map elapsed time since ``last_seen_at`` to a status band.

    A ``last_seen_at`` in the future (clock skew) counts as active.
    """
    elapsed = now - last_seen_at
    if elapsed < ACTIVE_THRESHOLD:
        return WorkerStatus.ACTIVE
    if elapsed < OFFLINE_THRESHOLD:
        return WorkerStatus.INACTIVE
    return WorkerStatus.OFFLINE


def is_active(last_seen_at: float, now: float) -> bool:
    return classify(last_seen_at, now) is WorkerStatus.ACTIVE


def is_offline(last_seen_at: float, now: float) -> bool:
    return classify(last_seen_at, now) is WorkerStatus.OFFLINE


def time_until_inactive(last_seen_at: float, now: float) -> float:
    """Seconds left before the worker drops out of the active band (0 if already out)."""
    return max(0.0, ACTIVE_THRESHOLD - (now - last_seen_at))


def time_until_offline(last_seen_at: float, now: float) -> float:
    return max(0.0, OFFLINE_THRESHOLD - (now - last_seen_at))
