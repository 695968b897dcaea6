"""
MCP server for browser-agent.

Speaks newline-delimited JSON-RPC on stdio and forwards tool calls to the
action executor through the RPC bridge.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, BinaryIO

from .bridge import RpcBridge
from .config import AgentConfig, configure_logging
from .errors import BridgeStartError
from .overlay import OverlayNotifier
from .server.contract import initialize_result, select_protocol, tools_list
from .server.dispatch import ToolDispatcher
from .server.redaction import redact_jsonrpc_for_log, redact_tool_arguments

logger = logging.getLogger("browser_agent.mcp")

__all__ = ["McpServer", "main"]


def _write_message(payload: dict[str, Any], out: BinaryIO | None = None) -> None:
    """One frame per line; stdout unless a stream is given."""
    stream = out if out is not None else sys.stdout.buffer
    stream.write((json.dumps(payload, ensure_ascii=False) + "\n").encode())
    stream.flush()


def _read_message(inp: BinaryIO | None = None) -> dict[str, Any] | None:
    """Read one JSON-RPC message; None at EOF, {} for blank or unparseable lines."""
    stream = inp if inp is not None else sys.stdin.buffer
    line = stream.readline()
    if not line:
        return None
    line = line.strip()
    if not line:
        return {}
    try:
        msg = json.loads(line.decode())
    except ValueError:
        logger.warning("mcp: failed to parse message (%d bytes)", len(line))
        return {}
    if not isinstance(msg, dict):
        return {}
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("recv %s", redact_jsonrpc_for_log(msg))
    return msg


class McpServer:
    """Stdio MCP server; tool calls go through the dispatcher it is given."""

    def __init__(self, dispatcher: ToolDispatcher, *, out: BinaryIO | None = None) -> None:
        self.dispatcher = dispatcher
        self._out = out

    def _send(self, payload: dict[str, Any]) -> None:
        _write_message(payload, self._out)

    def handle_initialize(self, request_id: Any, params: dict[str, Any] | None = None) -> None:
        requested = (params or {}).get("protocolVersion") if isinstance(params, dict) else None
        protocol = select_protocol(requested)
        self._send({"jsonrpc": "2.0", "id": request_id, "result": initialize_result(protocol)})

    def handle_list_tools(self, request_id: Any) -> None:
        self._send({"jsonrpc": "2.0", "id": request_id, "result": {"tools": tools_list()}})

    def handle_call_tool(self, request_id: Any, name: str, arguments: dict[str, Any]) -> None:
        logger.info("tool=%s args=%s", name, redact_tool_arguments(name, arguments))
        try:
            result = self.dispatcher.invoke(name, arguments)
            response = result.to_response()
        except Exception as exc:
            # invoke() reports failures itself; this only guards the stdio loop.
            logger.exception("tool_call_failed")
            response = {"content": [{"type": "text", "text": f"Error: {exc}"}], "isError": True}
        self._send({"jsonrpc": "2.0", "id": request_id, "result": response})

    def dispatch(self, message: dict[str, Any]) -> None:
        """Route one frame; notifications and unknown id-less frames get no reply."""
        if not message:
            return

        method = message.get("method")
        request_id = message.get("id")
        params = message.get("params") or {}

        if method == "initialize":
            self.handle_initialize(request_id, params)
        elif isinstance(method, str) and method.startswith("notifications/"):
            return
        elif method == "tools/list":
            self.handle_list_tools(request_id)
        elif method == "tools/call":
            name = params.get("name") if isinstance(params, dict) else None
            arguments = params.get("arguments") if isinstance(params, dict) else None
            self.handle_call_tool(request_id, str(name or ""), arguments if isinstance(arguments, dict) else {})
        elif method == "ping":
            self._send({"jsonrpc": "2.0", "id": request_id, "result": {}})
        elif request_id is not None:
            self._send(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": -32601, "message": f"Method {method} not found"},
                }
            )

    def serve(self, inp: BinaryIO | None = None) -> None:
        while True:
            message = _read_message(inp)
            if message is None:
                break
            self.dispatch(message)


def build_server(config: AgentConfig, bridge: RpcBridge) -> McpServer:
    overlay = OverlayNotifier(bridge, enabled=config.overlay_enabled, timeout=config.overlay_timeout)
    return McpServer(ToolDispatcher(bridge, overlay=overlay, timeouts=config.action_timeouts()))


def main() -> None:
    """Start the bridge, then serve MCP on stdio until EOF."""
    config = AgentConfig.from_env()
    configure_logging(config)

    bridge = RpcBridge(host=config.bridge_host, port=config.bridge_port, timeout=config.rpc_timeout)
    try:
        bridge.start()
    except BridgeStartError as exc:
        logger.error("bridge_start_failed: %s", exc)
        sys.exit(1)

    server = build_server(config, bridge)
    logger.info("browser-agent MCP server started")
    try:
        server.serve()
    except KeyboardInterrupt:
        pass
    finally:
        bridge.stop()


if __name__ == "__main__":
    main()
