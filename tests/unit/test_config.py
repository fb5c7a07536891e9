"""
test_config.py - Server configuration from the environment.
"""

import pytest

from minerboard.config import DEFAULT_PROXY_URL, ServerConfig, load_config

ENV_VARS = [
    "MINERBOARD_DB_PATH", "MINERBOARD_HOST", "MINERBOARD_PORT", "MINERBOARD_LOG_LEVEL",
    "MINERBOARD_RATE_LIMIT_SWEEP_SEC", "CRON_SECRET", "PROXY_API_URL", "PROXY_API_TOKEN",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = load_config()
    assert cfg == ServerConfig()
    assert cfg.port == 8080
    assert cfg.cron_secret == ""
    assert cfg.proxy_url == DEFAULT_PROXY_URL


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MINERBOARD_DB_PATH", "/tmp/board.db")
    monkeypatch.setenv("MINERBOARD_PORT", "9000")
    monkeypatch.setenv("MINERBOARD_LOG_LEVEL", "debug")
    monkeypatch.setenv("MINERBOARD_RATE_LIMIT_SWEEP_SEC", "60")
    monkeypatch.setenv("CRON_SECRET", "s3cret")
    monkeypatch.setenv("PROXY_API_URL", "http://proxy.local:8080/")
    monkeypatch.setenv("PROXY_API_TOKEN", "tok")
    cfg = load_config()
    assert cfg.db_path == "/tmp/board.db"
    assert cfg.port == 9000
    assert cfg.log_level == "DEBUG"
    assert cfg.rate_limit_sweep_sec == 60.0
    assert cfg.cron_secret == "s3cret"
    assert cfg.proxy_url == "http://proxy.local:8080"
    assert cfg.proxy_token == "tok"


def test_bad_number(monkeypatch):
    monkeypatch.setenv("MINERBOARD_RATE_LIMIT_SWEEP_SEC", "often")
    with pytest.raises(ValueError, match="MINERBOARD_RATE_LIMIT_SWEEP_SEC"):
        load_config()
