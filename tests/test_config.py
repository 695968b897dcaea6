from __future__ import annotations

import pytest

from mcp_servers.browser_agent.config import DEFAULT_BRIDGE_PORT, AgentConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BROWSER_AGENT_HOST",
        "BROWSER_AGENT_PORT",
        "BROWSER_AGENT_RPC_TIMEOUT",
        "BROWSER_AGENT_NAV_TIMEOUT",
        "BROWSER_AGENT_OVERLAY",
        "BROWSER_AGENT_BRIDGE_URL",
        "BROWSER_AGENT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = AgentConfig.from_env()

    assert config.bridge_host == "127.0.0.1"
    assert config.bridge_port == DEFAULT_BRIDGE_PORT
    assert config.rpc_timeout == 30.0
    assert config.bridge_url == f"ws://127.0.0.1:{DEFAULT_BRIDGE_PORT}"
    assert config.overlay_enabled is True
    assert config.log_level == "INFO"


def test_bridge_never_binds_beyond_loopback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BROWSER_AGENT_HOST", "0.0.0.0")
    assert AgentConfig.from_env().bridge_host == "127.0.0.1"


def test_env_overrides_are_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BROWSER_AGENT_PORT", "4100")
    monkeypatch.setenv("BROWSER_AGENT_RPC_TIMEOUT", "9999")
    monkeypatch.setenv("BROWSER_AGENT_NAV_TIMEOUT", "oops")
    monkeypatch.setenv("BROWSER_AGENT_OVERLAY", "off")
    monkeypatch.setenv("BROWSER_AGENT_LOG_LEVEL", "debug")

    config = AgentConfig.from_env()

    assert config.bridge_port == 4100
    assert config.bridge_url == "ws://127.0.0.1:4100"
    assert config.rpc_timeout == 300.0
    assert config.nav_timeout == 30.0
    assert config.overlay_enabled is False
    assert config.log_level == "DEBUG"


def test_invalid_port_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BROWSER_AGENT_PORT", "70000")
    assert AgentConfig.from_env().bridge_port == DEFAULT_BRIDGE_PORT


def test_navigate_timeout_covers_load_wait() -> None:
    assert AgentConfig().action_timeouts() == {"navigate": 35.0}
    # a long RPC default is never shortened
    assert AgentConfig(rpc_timeout=120.0, nav_timeout=10.0).action_timeouts() == {"navigate": 120.0}
