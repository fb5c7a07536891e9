"""
Shared fixtures for minerboard integration tests.

Provides a fully wired DashboardServer over in-memory SQLite, an
httpx.AsyncClient speaking ASGI to it, a controllable wall clock and a
scriptable mining proxy.
"""

import httpx
import pytest
import pytest_asyncio

from minerboard.config import ServerConfig
from minerboard.rate_limit import TokenBucketLimiter
from minerboard.server import DashboardServer

T0 = 1_700_000_000.0
CRON_SECRET = "cron-test-secret"


class FakeClock:
    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeProxy:
    """Scriptable stand-in for the mining proxy API."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def reply(self, path: str, body=None, status: int = 200):
        self.routes[path] = (status, body)

    def fail(self, path: str):
        self.routes[path] = None

    def handler(self, request: httpx.Request):
        self.requests.append(request)
        if request.url.path not in self.routes:
            return httpx.Response(404)
        route = self.routes[request.url.path]
        if route is None:
            raise httpx.ConnectError("connection refused", request=request)
        status, body = route
        return httpx.Response(status, json=body)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bucket_clock():
    return FakeClock(start=0.0)


@pytest.fixture
def fake_proxy():
    return FakeProxy()


@pytest_asyncio.fixture
async def server(clock, bucket_clock, fake_proxy):
    cfg = ServerConfig(
        db_path=":memory:",
        cron_secret=CRON_SECRET,
        proxy_url="http://proxy.test:8080",
        proxy_token="proxy-token",
    )
    srv = DashboardServer(
        cfg,
        clock=clock,
        limiter=TokenBucketLimiter(clock=bucket_clock),
        proxy_transport=httpx.MockTransport(fake_proxy.handler),
    )
    await srv.init_services()
    yield srv
    await srv.close_services()


@pytest_asyncio.fixture
async def client(server):
    transport = httpx.ASGITransport(app=server.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
def contribute(client):
    """POST a well-formed contribution for ``worker``."""

    async def _contribute(worker="rig-1", accepted=0, **extra):
        body = {"worker": worker, "hashrate1m": 100.0, "hashrate10m": 95.0, "accepted": accepted}
        body.update(extra)
        return await client.post("/api/contributions", json=body)

    return _contribute
