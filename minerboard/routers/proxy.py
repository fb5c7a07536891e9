"""Proxy router: live views fetched from the mining proxy API."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from starlette.requests import Request

from minerboard.aggregation import iso
from minerboard.deps import get_server
from minerboard.errors import UpstreamError

router = APIRouter()

NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}

_EMPTY_SUMMARY = {
    "totalHashrate": 0,
    "activeWorkers": 0,
    "totalWorkers": 0,
    "totalShares": 0,
    "acceptedShares": 0,
    "rejectedShares": 0,
    "uptime": 0,
}


@router.get("/api/proxy/summary")
async def proxy_summary(request: Request):
    srv = get_server(request)
    now = iso(srv.clock())
    try:
        summary = await srv.proxy.fetch_summary()
    except UpstreamError as e:
        body = {"error": e.title, "message": e.message, **_EMPTY_SUMMARY, "timestamp": now}
        return JSONResponse(body, status_code=e.status_code, headers=NO_CACHE)
    summary["timestamp"] = now
    return JSONResponse(summary, headers=NO_CACHE)


@router.get("/api/proxy/workers")
async def proxy_workers(request: Request):
    srv = get_server(request)
    now = iso(srv.clock())
    try:
        workers = await srv.proxy.live_workers()
    except UpstreamError as e:
        body = {"error": e.title, "message": e.message, "workers": [], "timestamp": now}
        return JSONResponse(body, status_code=e.status_code, headers=NO_CACHE)
    return JSONResponse({"workers": workers, "timestamp": now}, headers=NO_CACHE)
