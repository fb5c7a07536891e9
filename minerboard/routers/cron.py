"""Cron router: privileged bulk ingest of proxy worker stats."""

import hmac
import logging

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse
from starlette.requests import Request

from minerboard.aggregation import iso
from minerboard.deps import get_server
from minerboard.errors import Unauthorized, UpstreamError
from minerboard.proxy import reports_from_workers

router = APIRouter()
logger = logging.getLogger("cron")


def _check_secret(secret: str, authorization: str):
    if not secret:
        raise Unauthorized("Cron ingest is disabled")
    if not hmac.compare_digest(authorization.encode(), f"Bearer {secret}".encode()):
        raise Unauthorized("Invalid cron secret")


@router.post("/api/cron/snapshot")
async def cron_snapshot(request: Request, authorization: str = Header(default="")):
    srv = get_server(request)
    _check_secret(srv.config.cron_secret, authorization)

    try:
        workers = await srv.proxy.fetch_workers(timeout=srv.config.cron_proxy_timeout)
    except UpstreamError as e:
        logger.error("Cron snapshot job failed: %s", e.message)
        return JSONResponse(
            {"error": "Snapshot job failed", "message": e.message, "timestamp": iso(srv.clock())},
            status_code=500,
        )

    stats = await srv.ingest.submit_many(reports_from_workers(workers))
    logger.info(
        "Cron snapshot: %d snapshots, %d points, %d workers",
        stats["snapshots_created"], stats["points_awarded"], stats["workers_processed"],
    )
    return {
        "success": True,
        "snapshotsCreated": stats["snapshots_created"],
        "pointsAwarded": stats["points_awarded"],
        "workersProcessed": stats["workers_processed"],
        "timestamp": iso(srv.clock()),
    }
