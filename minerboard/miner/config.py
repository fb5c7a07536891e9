"""Agent settings persisted as a JSON file next to the agent."""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger("minercfg")

DEFAULT_POOL_URL = "brtnetwork.duckdns.org:3333"
DEFAULT_DASHBOARD_URL = "https://brt-dashboard.vercel.app"


def default_threads() -> int:
    return max(1, (os.cpu_count() or 1) * 75 // 100)


@dataclass
class MinerConfig:
    pool_url: str = DEFAULT_POOL_URL
    wallet_address: str = ""
    worker_id: str = ""
    threads: int = field(default_factory=default_threads)
    auto_start: bool = False
    dashboard_url: str = DEFAULT_DASHBOARD_URL

    def is_valid(self) -> bool:
        return bool(
            self.pool_url
            and self.wallet_address
            and self.worker_id
            and isinstance(self.threads, int)
            and self.threads > 0
            and self.dashboard_url
        )

    @classmethod
    def from_dict(cls, data: dict) -> "MinerConfig":
        """Build from a parsed JSON object, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


class MinerConfigStore:
    """Load/save a MinerConfig at ``path``. A missing or unreadable file yields defaults."""

    def __init__(self, path):
        self.path = Path(path)
        self._config: Optional[MinerConfig] = None

    def load(self) -> MinerConfig:
        try:
            if self.path.exists():
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if not isinstance(data, dict):
                    raise ValueError("config root must be an object")
                self._config = MinerConfig.from_dict(data)
                return self._config
        except (OSError, ValueError, TypeError) as e:
            logger.error("Error loading config %s: %s", self.path, e)

        self._config = MinerConfig()
        return self._config

    def save(self, config: MinerConfig) -> MinerConfig:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(config), indent=2), encoding="utf-8")
        self._config = config
        return config

    def get(self) -> MinerConfig:
        if self._config is None:
            self._config = MinerConfig()
        return self._config

    def update(self, **changes) -> MinerConfig:
        current = asdict(self.get())
        unknown = set(changes) - set(current)
        if unknown:
            raise KeyError(f"Unknown config field(s): {', '.join(sorted(unknown))}")
        current.update(changes)
        return self.save(MinerConfig(**current))

    def reset(self) -> MinerConfig:
        return self.save(MinerConfig())

    def is_valid(self, config: Optional[MinerConfig] = None) -> bool:
        cfg = config or self._config
        return cfg is not None and cfg.is_valid()

    def export_json(self) -> str:
        return json.dumps(asdict(self.get()), indent=2)

    def import_json(self, raw: str) -> MinerConfig:
        """Replace the stored config with ``raw``. Invalid configurations are rejected."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Invalid configuration format")
        config = MinerConfig.from_dict(data)
        if not config.is_valid():
            raise ValueError("Invalid configuration format")
        return self.save(config)
