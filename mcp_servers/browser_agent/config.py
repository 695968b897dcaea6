from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_BRIDGE_HOST = "127.0.0.1"
DEFAULT_BRIDGE_PORT = 3026
DEFAULT_RPC_TIMEOUT = 30.0
DEFAULT_NAV_TIMEOUT = 30.0
DEFAULT_OVERLAY_TIMEOUT = 2.0
DEFAULT_CDP_PORT = 9222
# Headroom over the executor-side load wait for issuing the navigation and reading the page back.
NAV_REPLY_MARGIN = 5.0

_LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1"}


def _env_float(name: str, default: float, *, lo: float, hi: float) -> float:
    try:
        value = float(os.environ.get(name) or default)
    except Exception:
        value = default
    return max(lo, min(value, hi))


def _env_int(name: str, default: int) -> int:
    try:
        value = int(os.environ.get(name) or default)
    except Exception:
        return default
    if value < 1 or value > 65535:
        return default
    return value


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "no", "off"}


@dataclass
class AgentConfig:
    bridge_host: str = DEFAULT_BRIDGE_HOST
    bridge_port: int = DEFAULT_BRIDGE_PORT
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    nav_timeout: float = DEFAULT_NAV_TIMEOUT
    overlay_enabled: bool = True
    overlay_timeout: float = DEFAULT_OVERLAY_TIMEOUT
    cdp_host: str = "127.0.0.1"
    cdp_port: int = DEFAULT_CDP_PORT
    bridge_url: str = ""
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.bridge_url:
            self.bridge_url = f"ws://{self.bridge_host}:{self.bridge_port}"

    def action_timeouts(self) -> dict[str, float]:
        """Bridge timeouts for actions that wait longer than one RPC round-trip."""
        return {"navigate": max(self.rpc_timeout, self.nav_timeout + NAV_REPLY_MARGIN)}

    @staticmethod
    def normalize_bridge_host(raw: str | None) -> str:
        # The bridge carries unauthenticated browser control; never listen beyond loopback.
        host = (raw or "").strip().lower()
        if host in _LOOPBACK_HOSTS:
            return host
        return DEFAULT_BRIDGE_HOST

    @staticmethod
    def normalize_log_level(raw: str | None) -> str:
        level = (raw or "").strip().upper()
        if level in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return level
        return "INFO"

    @classmethod
    def from_env(cls) -> AgentConfig:
        host = cls.normalize_bridge_host(os.environ.get("BROWSER_AGENT_HOST"))
        port = _env_int("BROWSER_AGENT_PORT", DEFAULT_BRIDGE_PORT)
        return cls(
            bridge_host=host,
            bridge_port=port,
            rpc_timeout=_env_float("BROWSER_AGENT_RPC_TIMEOUT", DEFAULT_RPC_TIMEOUT, lo=1.0, hi=300.0),
            nav_timeout=_env_float("BROWSER_AGENT_NAV_TIMEOUT", DEFAULT_NAV_TIMEOUT, lo=1.0, hi=300.0),
            overlay_enabled=_env_flag("BROWSER_AGENT_OVERLAY", True),
            overlay_timeout=_env_float("BROWSER_AGENT_OVERLAY_TIMEOUT", DEFAULT_OVERLAY_TIMEOUT, lo=0.1, hi=10.0),
            cdp_host=(os.environ.get("BROWSER_AGENT_CDP_HOST") or "127.0.0.1").strip() or "127.0.0.1",
            cdp_port=_env_int("BROWSER_AGENT_CDP_PORT", DEFAULT_CDP_PORT),
            bridge_url=(os.environ.get("BROWSER_AGENT_BRIDGE_URL") or "").strip(),
            log_level=cls.normalize_log_level(os.environ.get("BROWSER_AGENT_LOG_LEVEL")),
        )


def configure_logging(config: AgentConfig) -> None:
    """Log to stderr: stdout is reserved for MCP frames."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )


__all__ = ["AgentConfig", "configure_logging"]
