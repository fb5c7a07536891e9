"""Server configuration: defaults overridden by environment variables, then CLI flags."""

import os
from dataclasses import dataclass

DEFAULT_PROXY_URL = "http://brtnetwork.duckdns.org:8080"


@dataclass
class ServerConfig:
    db_path: str = "data/minerboard.db"
    host: str = "0.0.0.0"
    port: int = 8080
    # Shared secret for the privileged cron ingest path. Empty disables the route.
    cron_secret: str = ""
    proxy_url: str = DEFAULT_PROXY_URL
    proxy_token: str = ""
    proxy_timeout: float = 5.0
    cron_proxy_timeout: float = 10.0
    rate_limit_sweep_sec: float = 300.0
    log_level: str = "INFO"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def load_config(env_prefix: str = "MINERBOARD_") -> ServerConfig:
    """Build a ServerConfig from the process environment.

    ``CRON_SECRET``, ``PROXY_API_URL`` and ``PROXY_API_TOKEN`` are read without
    the prefix since they are shared with the deployment's cron scheduler.
    """
    cfg = ServerConfig()
    env = os.environ

    if v := env.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = v
    if v := env.get(f"{env_prefix}HOST"):
        cfg.host = v
    if v := env.get(f"{env_prefix}PORT"):
        cfg.port = int(v)
    if v := env.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = v.upper()
    cfg.rate_limit_sweep_sec = _env_float(
        f"{env_prefix}RATE_LIMIT_SWEEP_SEC", cfg.rate_limit_sweep_sec,
    )

    if v := env.get("CRON_SECRET"):
        cfg.cron_secret = v
    if v := env.get("PROXY_API_URL"):
        cfg.proxy_url = v.rstrip("/")
    if v := env.get("PROXY_API_TOKEN"):
        cfg.proxy_token = v
    return cfg
