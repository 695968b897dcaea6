"""
Tool dispatcher: tool call → bridge action → MCP response.

This is the single place where failures become error-flagged responses;
`invoke` never raises.
"""

from __future__ import annotations

import base64
import io
import logging
from typing import Any, Protocol

from PIL import Image

from ..overlay import OverlayNotifier
from .definitions import SCREENSHOT_ACTION, action_for_tool
from .types import ToolResult

logger = logging.getLogger("browser_agent.dispatch")

_FORMAT_MIME = {"png": "image/png", "jpeg": "image/jpeg", "jpg": "image/jpeg", "webp": "image/webp"}


class ActionCaller(Protocol):
    def call(self, action: str, params: dict[str, Any] | None = None, timeout: float | None = None) -> Any: ...


def sniff_image(data_b64: str) -> tuple[int, int, str] | None:
    """Return (width, height, mime) of a base64 image, or None if it cannot be decoded."""
    try:
        raw = base64.b64decode(data_b64, validate=False)
        with Image.open(io.BytesIO(raw)) as img:
            mime = Image.MIME.get(img.format or "", "")
            return int(img.width), int(img.height), mime
    except Exception:  # noqa: BLE001
        # Undecodable or oversized (DecompressionBombError): caller falls back to reported size.
        return None


def screenshot_result(result: dict[str, Any]) -> ToolResult | None:
    """Image + caption response for a screenshot payload; None when there is no image."""
    image = result.get("image")
    if not isinstance(image, str) or not image:
        return None
    fmt = str(result.get("format") or "png").lower()
    width = result.get("width")
    height = result.get("height")
    mime = _FORMAT_MIME.get(fmt, "image/png")

    sniffed = sniff_image(image)
    if sniffed is not None:
        width, height = sniffed[0], sniffed[1]
        mime = sniffed[2] or mime

    return ToolResult.image_with_caption(image, mime, f"Screenshot captured: {width}x{height}", data=result)


class ToolDispatcher:
    """Maps tool calls onto bridge actions."""

    def __init__(
        self,
        bridge: ActionCaller,
        *,
        overlay: OverlayNotifier | None = None,
        timeouts: dict[str, float] | None = None,
    ) -> None:
        self.bridge = bridge
        self.overlay = overlay
        # Per-action bridge timeouts; actions not listed use the bridge default.
        self.timeouts = dict(timeouts or {})

    def invoke(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        action = action_for_tool(name)
        if action is None:
            return ToolResult.error(f"Unknown tool: {name}")
        params = arguments if isinstance(arguments, dict) else {}

        if self.overlay is not None:
            self.overlay.show(action)
        try:
            result = self.bridge.call(action, params, timeout=self.timeouts.get(action))
        except Exception as exc:  # noqa: BLE001
            logger.info("tool_error tool=%s action=%s error=%s", name, action, exc)
            return ToolResult.error(str(exc) or type(exc).__name__)
        finally:
            if self.overlay is not None:
                self.overlay.hide(action)

        if action == SCREENSHOT_ACTION and isinstance(result, dict):
            shot = screenshot_result(result)
            if shot is not None:
                return shot
        return ToolResult.json(result)


__all__ = ["ToolDispatcher", "screenshot_result", "sniff_image"]
