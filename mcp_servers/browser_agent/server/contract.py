"""What the server tells an MCP client during the handshake."""

from __future__ import annotations

from typing import Any

from .definitions import TOOL_DEFINITIONS

SERVER_INFO: dict[str, str] = {"name": "browser-agent", "version": "1.0.0"}

# Newest first; clients asking for anything else get the newest.
SUPPORTED_PROTOCOL_VERSIONS = ["2025-06-18", "2025-03-26", "2024-11-05"]

# Only tools are served; the catalogue is static.
CAPABILITIES: dict[str, Any] = {"tools": {"listChanged": False}}


def select_protocol(requested: Any) -> str:
    return requested if requested in SUPPORTED_PROTOCOL_VERSIONS else SUPPORTED_PROTOCOL_VERSIONS[0]


def initialize_result(protocol: str) -> dict[str, Any]:
    return {"protocolVersion": protocol, "capabilities": CAPABILITIES, "serverInfo": SERVER_INFO}


def tools_list() -> list[dict[str, Any]]:
    return list(TOOL_DEFINITIONS)


__all__ = ["CAPABILITIES", "SERVER_INFO", "SUPPORTED_PROTOCOL_VERSIONS", "initialize_result", "select_protocol", "tools_list"]
