"""
supervisor.py - Lifecycle of the local XMRig process.

STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED. The supervisor writes
XMRig's JSON config, spawns the binary, relays its output to the log and
polls its HTTP API for hashrate and share counters.
"""

import asyncio
import json
import logging
import platform
from enum import Enum
from pathlib import Path
from typing import Optional

import httpx

logger = logging.getLogger("supervisor")

DEFAULT_HTTP_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 18080
STOP_GRACE_PERIOD = 5.0
STATS_TIMEOUT = 5.0


class MinerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


def xmrig_binary_path(resources_dir, system: Optional[str] = None, machine: Optional[str] = None) -> Path:
    """Platform-specific location of the bundled XMRig binary."""
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()
    arch = "arm64" if machine in ("arm64", "aarch64") else "x64"
    base = Path(resources_dir) / "xmrig"

    if system == "windows":
        return base / f"win-{arch}" / "xmrig.exe"
    if system == "darwin":
        return base / f"darwin-{arch}" / "xmrig"
    if system == "linux":
        return base / f"linux-{arch}" / "xmrig"
    raise RuntimeError(f"Unsupported platform: {system}")


def build_xmrig_config(
    pool_url: str,
    wallet_address: str,
    worker_id: str,
    threads: Optional[int] = None,
    http_host: str = DEFAULT_HTTP_HOST,
    http_port: int = DEFAULT_HTTP_PORT,
) -> dict:
    return {
        "api": {"id": worker_id, "worker-id": worker_id},
        "http": {
            "enabled": True,
            "host": http_host,
            "port": http_port,
            "access-token": None,
            "restricted": True,
        },
        "autosave": True,
        "cpu": {
            "enabled": True,
            "huge-pages": True,
            "hw-aes": None,
            "priority": None,
            "max-threads-hint": threads or 75,
        },
        "opencl": False,
        "cuda": False,
        "pools": [
            {
                "algo": None,
                "coin": "monero",
                "url": pool_url,
                "user": wallet_address,
                "pass": worker_id,
                "rig-id": worker_id,
                "keepalive": True,
                "enabled": True,
                "tls": False,
                "tls-fingerprint": None,
                "daemon": False,
                "socks5": None,
                "self-select": None,
                "submit-to-origin": False,
            }
        ],
        "retries": 5,
        "retry-pause": 5,
        "print-time": 60,
        "donate-level": 1,
    }


def parse_summary(data: dict) -> dict:
    """XMRig /2/summary payload -> the stats the reporter sends."""
    totals = (data.get("hashrate") or {}).get("total") or []

    def rate(i):
        return totals[i] if i < len(totals) and totals[i] is not None else 0

    results = data.get("results") or {}
    good = results.get("shares_good") or 0
    total = results.get("shares_total") or 0
    return {
        "hashrate": rate(0),
        "hashrate1m": rate(1),
        "hashrate10m": rate(2),
        "accepted": good,
        "rejected": total - good,
        "uptime": int(data.get("uptime") or 0),
    }


class XMRigSupervisor:
    """Start, stop and monitor one XMRig subprocess."""

    def __init__(
        self,
        resources_dir,
        binary_path=None,
        http_host: str = DEFAULT_HTTP_HOST,
        http_port: int = DEFAULT_HTTP_PORT,
        grace_period: float = STOP_GRACE_PERIOD,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.resources_dir = Path(resources_dir)
        self.binary_path = Path(binary_path) if binary_path else xmrig_binary_path(resources_dir)
        self.config_path = self.resources_dir / "xmrig" / "config.json"
        self.http_host = http_host
        self.http_port = http_port
        self.grace_period = grace_period
        self._transport = transport
        self._state = MinerState.STOPPED
        self._process: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task] = None
        self._launch: Optional[dict] = None

    @property
    def state(self) -> MinerState:
        return self._state

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    def is_running(self) -> bool:
        return self._state is MinerState.RUNNING

    def _write_config(self, config: dict):
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(json.dumps(config, indent=2), encoding="utf-8")

    async def start(self, pool_url: str, wallet_address: str, worker_id: str, threads: Optional[int] = None):
        if self._state is not MinerState.STOPPED:
            raise RuntimeError(f"XMRig is already {self._state.value}")
        if not self.binary_path.exists():
            raise FileNotFoundError(f"XMRig binary not found at: {self.binary_path}")

        self._state = MinerState.STARTING
        self._launch = {
            "pool_url": pool_url,
            "wallet_address": wallet_address,
            "worker_id": worker_id,
            "threads": threads,
        }
        try:
            self._write_config(build_xmrig_config(
                pool_url, wallet_address, worker_id, threads,
                http_host=self.http_host, http_port=self.http_port,
            ))
            self._process = await asyncio.create_subprocess_exec(
                str(self.binary_path), "--config", str(self.config_path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except Exception:
            self._state = MinerState.STOPPED
            self._process = None
            raise

        self._state = MinerState.RUNNING
        self._watcher = asyncio.create_task(self._watch(self._process))
        logger.info("XMRig started (pid %d, worker %s)", self._process.pid, worker_id)

    async def _pump(self, stream: asyncio.StreamReader, level: int):
        async for line in stream:
            logger.log(level, "[XMRig] %s", line.decode(errors="replace").rstrip())

    async def _watch(self, process: asyncio.subprocess.Process):
        pumps = [
            asyncio.create_task(self._pump(process.stdout, logging.INFO)),
            asyncio.create_task(self._pump(process.stderr, logging.WARNING)),
        ]
        code = await process.wait()
        await asyncio.gather(*pumps, return_exceptions=True)
        if self._state is MinerState.STOPPING:
            logger.info("XMRig exited with code %s", code)
        else:
            logger.warning("XMRig exited unexpectedly with code %s", code)
        self._process = None
        self._state = MinerState.STOPPED

    async def stop(self):
        process = self._process
        if self._state is not MinerState.RUNNING or process is None:
            return

        self._state = MinerState.STOPPING
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self.grace_period)
        except ProcessLookupError:
            pass  # already gone
        except asyncio.TimeoutError:
            logger.warning("XMRig did not stop within %.1fs, killing", self.grace_period)
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

        if self._watcher:
            await self._watcher
            self._watcher = None
        self._process = None
        self._state = MinerState.STOPPED

    async def restart(self):
        await self.stop()
        if self._launch:
            await self.start(**self._launch)

    async def get_stats(self) -> Optional[dict]:
        """Current stats from XMRig's HTTP API, or None if not running or unreachable."""
        if not self.is_running():
            return None

        url = f"http://{self.http_host}:{self.http_port}/2/summary"
        try:
            async with httpx.AsyncClient(timeout=STATS_TIMEOUT, transport=self._transport) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch XMRig stats: %r", e)
            return None
        if not isinstance(data, dict):
            return None
        return parse_summary(data)
