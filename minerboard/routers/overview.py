"""Overview router: service banner and database-wide summary."""

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import Response

from minerboard.aggregation import iso
from minerboard.deps import get_server

router = APIRouter()


@router.get("/")
async def root(request: Request):
    srv = get_server(request)
    return {
        "service": "minerboard",
        "version": srv.app.version,
        "rate_limited_clients": len(srv.limiter),
    }


@router.get("/api/summary")
async def summary(request: Request, response: Response):
    srv = get_server(request)
    data = await srv.aggregation.get_summary()
    data["timestamp"] = iso(srv.clock())
    response.headers["Cache-Control"] = "public, s-maxage=5, stale-while-revalidate=10"
    return data
