"""Leaderboard router: /api/leaderboard."""

from fastapi import APIRouter, Query
from starlette.requests import Request
from starlette.responses import Response

from minerboard.aggregation import LEADERBOARD_LIMIT, iso
from minerboard.deps import get_server

router = APIRouter()


@router.get("/api/leaderboard")
async def leaderboard(
    request: Request,
    response: Response,
    limit: int = Query(default=LEADERBOARD_LIMIT, ge=1, le=LEADERBOARD_LIMIT),
):
    srv = get_server(request)
    board = await srv.aggregation.get_leaderboard(limit=limit)
    response.headers["Cache-Control"] = "public, s-maxage=10, stale-while-revalidate=30"
    return {"leaderboard": board, "timestamp": iso(srv.clock())}
