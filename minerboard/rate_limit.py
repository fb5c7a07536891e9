"""
rate_limit.py - Per-client token bucket guarding the contribution endpoint.

Each client key owns a bucket of ``capacity`` tokens refilled continuously at
``refill_rate`` tokens/second. A request costs one token. Buckets untouched
for longer than ``idle_ttl`` are dropped by ``cleanup()``, which the server
runs from an explicit sweeper task.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger("ratelimit")

MAX_TOKENS = 30
REFILL_RATE = 30 / 60  # tokens per second
MAX_IDLE_TIME = 300.0  # seconds
DEFAULT_SWEEP_INTERVAL = 300.0


@dataclass
class TokenBucket:
    tokens: float
    last_refill: float


class TokenBucketLimiter:
    """Token bucket map keyed by client identifier."""

    def __init__(
        self,
        capacity: int = MAX_TOKENS,
        refill_rate: float = REFILL_RATE,
        idle_ttl: float = MAX_IDLE_TIME,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._buckets)

    def allow(self, key: str) -> bool:
        """Refill the bucket for ``key`` and try to take one token."""
        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(key)
            if bucket is None:
                self._buckets[key] = TokenBucket(tokens=self.capacity - 1, last_refill=now)
                return True

            elapsed = max(0.0, now - bucket.last_refill)
            bucket.tokens = min(self.capacity, bucket.tokens + elapsed * self.refill_rate)
            bucket.last_refill = now

            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return True
            return False

    def remaining(self, key: str) -> float:
        """Tokens available to ``key`` right now, without consuming any."""
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return float(self.capacity)
            elapsed = max(0.0, self._clock() - bucket.last_refill)
            return min(self.capacity, bucket.tokens + elapsed * self.refill_rate)

    def cleanup(self) -> int:
        """Drop idle buckets. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            stale = [k for k, b in self._buckets.items() if now - b.last_refill > self.idle_ttl]
            for k in stale:
                del self._buckets[k]
        if stale:
            logger.debug("Dropped %d idle rate-limit buckets", len(stale))
        return len(stale)

    # -------------------------------------------------------------------
    # Background sweep
    # -------------------------------------------------------------------

    def start_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL):
        if self._sweeper is not None:
            return
        self._sweeper = asyncio.create_task(self._sweep(interval))
        logger.info("Rate-limit sweeper started (interval: %.0fs)", interval)

    async def stop_sweeper(self):
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("Rate-limit sweeper stopped")

    async def _sweep(self, interval: float):
        while True:
            try:
                await asyncio.sleep(interval)
                self.cleanup()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Rate-limit sweep failed")


def client_key(headers, peer: Optional[str] = None) -> str:
    """Derive the rate-limit key from forwarded headers, falling back to the peer address."""
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return peer or "unknown"
