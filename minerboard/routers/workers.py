"""Workers router: /api/workers and /api/workers/{worker_id}."""

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import Response

from minerboard.aggregation import iso
from minerboard.deps import get_server

router = APIRouter()

CACHE_CONTROL = "public, s-maxage=5, stale-while-revalidate=10"


@router.get("/api/workers")
async def list_workers(request: Request, response: Response):
    srv = get_server(request)
    workers = await srv.aggregation.list_workers()
    response.headers["Cache-Control"] = CACHE_CONTROL
    return {"workers": workers, "timestamp": iso(srv.clock())}


@router.get("/api/workers/{worker_id}")
async def get_worker(request: Request, response: Response, worker_id: str):
    srv = get_server(request)
    detail = await srv.aggregation.get_worker_detail(worker_id)
    response.headers["Cache-Control"] = CACHE_CONTROL
    return detail
