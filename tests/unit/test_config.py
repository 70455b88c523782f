"""
AppConfig environment loading tests.

- Defaults when nothing is set
- Every variable overrides its default
- Malformed numbers fail loudly
"""

import pytest

from config import AppConfig
from constants import (
    REACHABILITY_PROBE_HOST_DEFAULT,
    REACHABILITY_PROBE_PORT_DEFAULT,
    ROOM_WS_BASE_URL_DEFAULT,
)


_VARS = (
    "ENV",
    "ROOM_WS_BASE_URL",
    "ROOM_ID",
    "ROOM_LINK_VERBOSE",
    "REACHABILITY_PROBE_ENABLED",
    "REACHABILITY_PROBE_HOST",
    "REACHABILITY_PROBE_PORT",
    "REACHABILITY_PROBE_INTERVAL_S",
    "REACHABILITY_PROBE_TIMEOUT_S",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AppConfig.load_from_env()

    assert config.env == "dev"
    assert config.room_ws_base_url == ROOM_WS_BASE_URL_DEFAULT
    assert config.room_id == "1"
    assert config.verbose is False
    assert config.probe_enabled is True
    assert config.probe_host == REACHABILITY_PROBE_HOST_DEFAULT
    assert config.probe_port == REACHABILITY_PROBE_PORT_DEFAULT


def test_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ROOM_WS_BASE_URL", "wss://chat.example")
    monkeypatch.setenv("ROOM_ID", "lobby")
    monkeypatch.setenv("ROOM_LINK_VERBOSE", "1")
    monkeypatch.setenv("REACHABILITY_PROBE_ENABLED", "0")
    monkeypatch.setenv("REACHABILITY_PROBE_PORT", "443")
    monkeypatch.setenv("REACHABILITY_PROBE_TIMEOUT_S", "0.5")

    config = AppConfig.load_from_env()

    assert config.room_ws_base_url == "wss://chat.example"
    assert config.room_id == "lobby"
    assert config.verbose is True
    assert config.probe_enabled is False
    assert config.probe_port == 443
    assert config.probe_timeout_s == 0.5


def test_malformed_number_raises(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("REACHABILITY_PROBE_PORT", "not-a-port")

    with pytest.raises(ValueError):
        AppConfig.load_from_env()
