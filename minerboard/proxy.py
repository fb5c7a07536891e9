"""
proxy.py - Client for the mining proxy's HTTP API (xmrig-proxy /1/summary, /1/workers).

Used by the live proxy endpoints and by the cron bulk-ingest path. Every call
is bounded by a timeout; failures surface as UpstreamError and are never
retried here.
"""

import logging
import time
from typing import Callable, List, Optional

import httpx

from minerboard.aggregation import iso
from minerboard.errors import UpstreamError
from minerboard.liveness import classify

logger = logging.getLogger("proxy")

# Positions inside one xmrig-proxy worker row.
ROW_ID = 0
ROW_ACCEPTED = 3
ROW_REJECTED = 4
ROW_LAST_SHARE_MS = 7
ROW_HASHRATE_1M = 9
ROW_HASHRATE_10M = 10


def _at(row: list, index: int, default=0):
    if index < len(row) and row[index] is not None:
        return row[index]
    return default


def _total(hashrate: Optional[dict], index: int) -> float:
    totals = (hashrate or {}).get("total") or []
    if index < len(totals) and totals[index] is not None:
        return totals[index]
    return 0


def parse_worker_rows(payload: dict) -> List[dict]:
    """Normalize the proxy's ``workers`` field to plain dicts.

    The proxy reports workers as positional rows; older deployments
    returned a mapping of worker id to a summary object. Both are accepted.
    """
    workers = payload.get("workers") or []
    parsed = []
    if isinstance(workers, dict):
        for worker_id, data in workers.items():
            parsed.append({
                "worker": worker_id,
                "accepted": data.get("accepted") or 0,
                "rejected": data.get("rejected") or 0,
                "last_share_ms": data.get("lastShare") or 0,
                "hashrate1m": _total(data.get("hashrate"), 1),
                "hashrate10m": _total(data.get("hashrate"), 2),
            })
        return parsed

    for row in workers:
        if not isinstance(row, list) or not row:
            continue
        parsed.append({
            "worker": _at(row, ROW_ID, "") or "unknown",
            "accepted": _at(row, ROW_ACCEPTED),
            "rejected": _at(row, ROW_REJECTED),
            "last_share_ms": _at(row, ROW_LAST_SHARE_MS),
            "hashrate1m": _at(row, ROW_HASHRATE_1M),
            "hashrate10m": _at(row, ROW_HASHRATE_10M),
        })
    return parsed


class ProxyClient:
    """Thin async wrapper over the proxy API with Bearer auth."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._clock = clock

    async def _get(self, path: str, timeout: Optional[float] = None) -> dict:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            async with httpx.AsyncClient(
                timeout=timeout or self._timeout, transport=self._transport,
            ) as client:
                resp = await client.get(f"{self.base_url}{path}", headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("Proxy %s returned HTTP %d", path, exc.response.status_code)
            raise UpstreamError(f"Proxy server returned {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.warning("Proxy %s request failed: %r", path, exc)
            raise UpstreamError(f"Proxy server unreachable: {exc.__class__.__name__}")
        except ValueError:
            logger.warning("Proxy %s returned invalid JSON", path)
            raise UpstreamError("Proxy server returned invalid JSON")
        if not isinstance(data, dict):
            raise UpstreamError("Proxy server returned an unexpected payload")
        return data

    async def fetch_summary(self) -> dict:
        data = await self._get("/1/summary")
        results = data.get("results") or {}
        workers = data.get("workers")
        if not isinstance(workers, dict):
            workers = {}
        shares_total = results.get("shares_total") or 0
        shares_good = results.get("shares_good") or 0
        return {
            "totalHashrate": _total(data.get("hashrate"), 2),
            "activeWorkers": workers.get("active") or 0,
            "totalWorkers": workers.get("total") or 0,
            "totalShares": shares_total,
            "acceptedShares": shares_good,
            "rejectedShares": shares_total - shares_good,
            "uptime": data.get("uptime") or 0,
        }

    async def fetch_workers(self, timeout: Optional[float] = None) -> List[dict]:
        data = await self._get("/1/workers", timeout=timeout)
        return parse_worker_rows(data)

    async def live_workers(self) -> List[dict]:
        """Proxy workers in the dashboard's worker-list shape. Points are not known here."""
        now = self._clock()
        result = []
        for w in await self.fetch_workers():
            last_seen = w["last_share_ms"] / 1000.0 if w["last_share_ms"] else now
            result.append({
                "worker": w["worker"],
                "status": classify(last_seen, now).value,
                "hashrate1m": w["hashrate1m"],
                "hashrate10m": w["hashrate10m"],
                "totalAccepted": w["accepted"],
                "totalRejected": w["rejected"],
                "totalPoints": 0,
                "lastSeenAt": iso(last_seen),
            })
        return result


def _share_sum(accepted, rejected):
    for value in (accepted, rejected):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
    return accepted + rejected


def reports_from_workers(workers: List[dict]) -> List[dict]:
    """Turn proxy worker rows into ingest reports. totalHashes is accepted + rejected here.

    Rows with non-numeric counters pass through unchanged so ingest rejects them.
    """
    return [
        {
            "worker": w["worker"],
            "hashrate1m": w["hashrate1m"],
            "hashrate10m": w["hashrate10m"],
            "accepted": w["accepted"],
            "rejected": w["rejected"],
            "totalHashes": _share_sum(w["accepted"], w["rejected"]),
        }
        for w in workers
    ]
