"""Dependency helpers for router modules."""

from starlette.requests import Request

from minerboard.errors import RateLimitExceeded
from minerboard.rate_limit import client_key


def get_server(request: Request):
    return request.app.state.server


async def enforce_rate_limit(request: Request):
    srv = get_server(request)
    peer = request.client.host if request.client else None
    if not srv.limiter.allow(client_key(request.headers, peer)):
        raise RateLimitExceeded()
