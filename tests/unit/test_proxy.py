"""
test_proxy.py - Mining proxy API client, driven through httpx.MockTransport.
"""

import httpx
import pytest

from minerboard.aggregation import iso
from minerboard.errors import UpstreamError
from minerboard.proxy import ProxyClient, parse_worker_rows, reports_from_workers

NOW = 1_700_000_000.0

SUMMARY = {
    "uptime": 7200,
    "hashrate": {"total": [1500.0, 1400.0, 1350.5, 1300.0]},
    "workers": {"active": 3, "total": 5},
    "results": {"shares_total": 120, "shares_good": 115},
}

WORKERS = {
    "workers": [
        # id, ip, connections, accepted, rejected, invalid, hashes, last_share_ms, ?, 1m, 10m
        ["rig-a", "10.0.0.2", 1, 100, 2, 0, 100000, (NOW - 10) * 1000, 0, 512.0, 500.0],
        ["rig-b", "10.0.0.3", 1, 40, 0, 0, 40000, (NOW - 120) * 1000, 0, 0.0, 12.5],
        ["rig-c", "10.0.0.4", 0, 0, 0, 0, 0, 0, 0, 0.0, 0.0],
    ]
}


def make_client(handler, token="secret-token"):
    return ProxyClient(
        "http://proxy.test:8080/",
        token=token,
        transport=httpx.MockTransport(handler),
        clock=lambda: NOW,
    )


def route(payloads):
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        body = payloads.get(request.url.path)
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, json=body)

    handler.seen = seen
    return handler


class TestParsing:

    def test_rows(self):
        rows = parse_worker_rows(WORKERS)
        assert rows[0] == {
            "worker": "rig-a",
            "accepted": 100,
            "rejected": 2,
            "last_share_ms": (NOW - 10) * 1000,
            "hashrate1m": 512.0,
            "hashrate10m": 500.0,
        }
        assert len(rows) == 3

    def test_short_rows_default_to_zero(self):
        rows = parse_worker_rows({"workers": [["tiny", "ip", 1, 7]]})
        assert rows == [{
            "worker": "tiny", "accepted": 7, "rejected": 0,
            "last_share_ms": 0, "hashrate1m": 0, "hashrate10m": 0,
        }]

    def test_mapping_form(self):
        payload = {"workers": {"rig-x": {
            "accepted": 9, "rejected": 1, "lastShare": 5000,
            "hashrate": {"total": [10.0, 11.0, 12.0]},
        }}}
        [row] = parse_worker_rows(payload)
        assert row["worker"] == "rig-x"
        assert row["hashrate1m"] == 11.0
        assert row["hashrate10m"] == 12.0

    def test_missing_workers(self):
        assert parse_worker_rows({}) == []

    def test_reports_from_workers(self):
        reports = reports_from_workers(parse_worker_rows(WORKERS))
        assert reports[0] == {
            "worker": "rig-a",
            "hashrate1m": 512.0,
            "hashrate10m": 500.0,
            "accepted": 100,
            "rejected": 2,
            "totalHashes": 102,
        }

    def test_reports_with_malformed_counters(self):
        workers = parse_worker_rows({"workers": [
            ["rig-x", "10.0.0.9", 1, "5", 0, 0, 0, 0, 0, 10.0, 9.0],
            ["rig-y", "10.0.0.9", 1, 4, None, 0, 0, 0, 0, 10.0, 9.0],
        ]})
        reports = reports_from_workers(workers)
        assert reports[0]["accepted"] == "5"
        assert reports[0]["totalHashes"] is None
        assert reports[1]["totalHashes"] == 4


@pytest.mark.asyncio
class TestClient:

    async def test_summary(self):
        handler = route({"/1/summary": SUMMARY})
        summary = await make_client(handler).fetch_summary()
        assert summary == {
            "totalHashrate": 1350.5,
            "activeWorkers": 3,
            "totalWorkers": 5,
            "totalShares": 120,
            "acceptedShares": 115,
            "rejectedShares": 5,
            "uptime": 7200,
        }
        [request] = handler.seen
        assert request.headers["authorization"] == "Bearer secret-token"
        assert str(request.url) == "http://proxy.test:8080/1/summary"

    async def test_no_token_no_auth_header(self):
        handler = route({"/1/summary": SUMMARY})
        await make_client(handler, token="").fetch_summary()
        assert "authorization" not in handler.seen[0].headers

    async def test_http_error_status(self):
        client = make_client(lambda request: httpx.Response(502))
        with pytest.raises(UpstreamError, match="502"):
            await client.fetch_summary()

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UpstreamError) as exc_info:
            await make_client(handler).fetch_workers()
        assert exc_info.value.status_code == 503

    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(UpstreamError, match="invalid JSON"):
            await client.fetch_summary()

    async def test_non_object_payload(self):
        client = make_client(lambda request: httpx.Response(200, json=[1, 2]))
        with pytest.raises(UpstreamError):
            await client.fetch_workers()

    async def test_live_workers(self):
        workers = await make_client(route({"/1/workers": WORKERS})).live_workers()
        by_id = {w["worker"]: w for w in workers}
        assert by_id["rig-a"]["status"] == "active"
        assert by_id["rig-a"]["totalAccepted"] == 100
        assert by_id["rig-a"]["totalPoints"] == 0
        assert by_id["rig-a"]["lastSeenAt"] == iso(NOW - 10)
        assert by_id["rig-b"]["status"] == "inactive"
        # No share yet: treated as seen now.
        assert by_id["rig-c"]["status"] == "active"
        assert by_id["rig-c"]["lastSeenAt"] == iso(NOW)
