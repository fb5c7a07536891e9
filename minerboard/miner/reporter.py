"""Periodic upload of the local miner's stats to the dashboard's contribution endpoint."""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

import httpx

if TYPE_CHECKING:
    from minerboard.miner.config import MinerConfigStore
    from minerboard.miner.supervisor import XMRigSupervisor

logger = logging.getLogger("reporter")

REPORT_INTERVAL = 5.0
REPORT_TIMEOUT = 10.0
HASHES_PER_SHARE = 1000  # rough client-side estimate


class ContributionReporter:
    """Every ``interval`` seconds, POST the supervisor's stats to the dashboard."""

    def __init__(
        self,
        supervisor: "XMRigSupervisor",
        config_store: "MinerConfigStore",
        interval: float = REPORT_INTERVAL,
        timeout: float = REPORT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.supervisor = supervisor
        self.config_store = config_store
        self.interval = interval
        self.timeout = timeout
        self._transport = transport
        self._task: Optional[asyncio.Task] = None
        self.last_accepted = 0

    def is_running(self) -> bool:
        return self._task is not None

    def start(self):
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("Contribution reporting started (interval: %.0fs)", self.interval)

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.last_accepted = 0
        logger.info("Contribution reporting stopped")

    async def _run(self):
        while True:
            try:
                await asyncio.sleep(self.interval)
                await self.report_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error reporting contribution")

    async def report_once(self) -> Optional[dict]:
        """One reporting cycle. Returns the dashboard's response body, or None if skipped."""
        if not self.supervisor.is_running():
            return None

        stats = await self.supervisor.get_stats()
        if not stats:
            return None

        config = self.config_store.get()
        if not config.dashboard_url:
            logger.warning("Dashboard URL not configured")
            return None

        payload = {
            "worker": config.worker_id,
            "hashrate1m": stats["hashrate1m"],
            "hashrate10m": stats["hashrate10m"],
            "accepted": stats["accepted"],
            "rejected": stats["rejected"],
            "totalHashes": stats["accepted"] * HASHES_PER_SHARE,
        }
        url = f"{config.dashboard_url.rstrip('/')}/api/contributions"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error("Failed to report contribution: %r", e)
            return None

        if resp.is_error:
            logger.error("Failed to report contribution: HTTP %d %s", resp.status_code, resp.text[:200])
            return None

        try:
            result = resp.json()
        except ValueError:
            logger.error("Dashboard returned invalid JSON")
            return None

        if result.get("pointsAwarded"):
            logger.info("Contribution reported: %s earned %d points", config.worker_id, result["pointsAwarded"])
        self.last_accepted = stats["accepted"]
        return result
