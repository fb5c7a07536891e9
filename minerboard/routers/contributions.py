"""Contributions router: POST /api/contributions (snapshot ingest)."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.requests import Request

from minerboard.deps import enforce_rate_limit, get_server
from minerboard.models import ContributionRequest

router = APIRouter()


@router.post("/api/contributions", dependencies=[Depends(enforce_rate_limit)])
async def post_contribution(request: Request, body: ContributionRequest):
    srv = get_server(request)
    result = await srv.ingest.submit(
        body.worker,
        body.hashrate1m,
        body.hashrate10m,
        accepted=body.accepted,
        rejected=body.rejected,
        total_hashes=body.total_hashes,
    )
    content = {"success": True, "snapshotId": result.snapshot_id}
    if result.points_awarded is not None:
        content["pointsAwarded"] = result.points_awarded
        content["message"] = f"Contribution recorded. Earned {result.points_awarded} points!"
    else:
        content["message"] = "Contribution recorded successfully"
    return JSONResponse(content, status_code=201)
