"""
server.py - Mining dashboard API server entry point.

Single-process server combining:
 - SQLite persistent storage via StorageManager
 - Snapshot ingest, points ledger and read-side aggregation services
 - Live passthrough to the mining proxy API
 - REST API (FastAPI on uvicorn, port 8080)

Usage:
    python -m minerboard [--port 8080] [--db-path data/minerboard.db]
    minerboard-server [--port 8080] [--db-path data/minerboard.db]
"""

import argparse
import asyncio
import logging
import os
import time
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from minerboard import __version__
from minerboard.aggregation import AggregationService
from minerboard.config import ServerConfig, load_config
from minerboard.errors import MinerboardError
from minerboard.ingest import SnapshotIngest
from minerboard.points import PointsLedger
from minerboard.proxy import ProxyClient
from minerboard.rate_limit import TokenBucketLimiter
from minerboard.routers import register_all_routers
from minerboard.storage import StorageManager

LOG_FORMAT = "%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s"

logger = logging.getLogger("server")


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


async def _domain_error_handler(request: Request, exc: MinerboardError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        {"error": exc.title, "message": exc.message},
        status_code=exc.status_code,
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {"error": "Validation error", "message": _validation_message(exc)},
        status_code=400,
    )


class DashboardServer:
    """Owns the FastAPI app and the services behind it."""

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        clock: Callable[[], float] = time.time,
        limiter: Optional[TokenBucketLimiter] = None,
        proxy_transport=None,
    ):
        self.config = config or ServerConfig()
        self.clock = clock
        self.limiter = limiter if limiter is not None else TokenBucketLimiter()
        self._proxy_transport = proxy_transport

        # Initialized async in init_services()
        self.storage: Optional[StorageManager] = None
        self.points: Optional[PointsLedger] = None
        self.ingest: Optional[SnapshotIngest] = None
        self.aggregation: Optional[AggregationService] = None
        self.proxy: Optional[ProxyClient] = None
        self._uvicorn_server: Optional[uvicorn.Server] = None

        self.app = FastAPI(title="Minerboard", version=__version__)
        self.app.state.server = self
        self.app.add_exception_handler(MinerboardError, _domain_error_handler)
        self.app.add_exception_handler(RequestValidationError, _request_validation_handler)
        register_all_routers(self.app)

    async def init_services(self):
        """Open storage and wire up services (must be called in async context)."""
        db_dir = os.path.dirname(self.config.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self.storage = StorageManager(self.config.db_path)
        await self.storage.initialize()

        self.points = PointsLedger(self.storage.snapshots, self.storage.ledger, clock=self.clock)
        self.ingest = SnapshotIngest(self.storage.snapshots, self.points, clock=self.clock)
        self.aggregation = AggregationService(
            self.storage.snapshots, self.storage.ledger, clock=self.clock,
        )
        self.proxy = ProxyClient(
            self.config.proxy_url,
            token=self.config.proxy_token,
            timeout=self.config.proxy_timeout,
            transport=self._proxy_transport,
            clock=self.clock,
        )
        logger.info("Services initialized (db=%s)", self.config.db_path)

    async def close_services(self):
        await self.limiter.stop_sweeper()
        if self.storage:
            await self.storage.close()
            self.storage = None

    async def start(self):
        await self.init_services()
        self.limiter.start_sweeper(self.config.rate_limit_sweep_sec)

        config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
        self._uvicorn_server = uvicorn.Server(config)
        logger.info("REST API starting on port %d", self.config.port)
        try:
            await self._uvicorn_server.serve()
        finally:
            await self.close_services()

    async def stop(self):
        if self._uvicorn_server:
            self._uvicorn_server.should_exit = True


def main():
    """CLI entry point for the dashboard server."""
    cfg = load_config()

    parser = argparse.ArgumentParser(description="Minerboard mining dashboard server")
    parser.add_argument("--host", default=cfg.host, help=f"Bind address (default: {cfg.host})")
    parser.add_argument("--port", type=int, default=cfg.port, help=f"REST API port (default: {cfg.port})")
    parser.add_argument("--db-path", default=cfg.db_path, help=f"SQLite database path (default: {cfg.db_path})")
    parser.add_argument("--proxy-url", default=cfg.proxy_url, help="Mining proxy API base URL")
    parser.add_argument("--log-level", default=cfg.log_level, help=f"Log level (default: {cfg.log_level})")
    args = parser.parse_args()

    cfg.host = args.host
    cfg.port = args.port
    cfg.db_path = args.db_path
    cfg.proxy_url = args.proxy_url.rstrip("/")
    cfg.log_level = args.log_level.upper()

    logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT, datefmt="%H:%M:%S")

    server = DashboardServer(cfg)

    logger.info("=" * 60)
    logger.info("  Minerboard %s", __version__)
    logger.info("  REST API:    http://%s:%d", cfg.host, cfg.port)
    logger.info("  Database:    %s", cfg.db_path)
    logger.info("  Proxy API:   %s", cfg.proxy_url)
    logger.info("  Cron ingest: %s", "enabled" if cfg.cron_secret else "disabled")
    logger.info("=" * 60)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
