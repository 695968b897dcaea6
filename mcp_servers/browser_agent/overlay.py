"""Status overlay: page-side calls and the dispatcher's best-effort notifier.

The overlay itself is drawn by a helper script the browser side injects as
`window.__browserAgent`. Nothing here draws anything; it only calls into that
helper when it exists.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from .errors import OverlayError

logger = logging.getLogger("browser_agent.overlay")

OVERLAY_HELPER = "window.__browserAgent"

OPERATION_STATUS = {
    "navigate": "Navigating...",
    "click": "Clicking element...",
    "type": "Typing text...",
    "scroll": "Scrolling page...",
    "screenshot": "Taking screenshot...",
    "extract": "Extracting content...",
    "evaluate": "Executing script...",
}


def _helper_call(fn: str, *args: Any) -> str:
    arg_list = ", ".join(json.dumps(a) for a in args)
    return f"""
    (() => {{
        const helper = {OVERLAY_HELPER};
        if (!helper || typeof helper.{fn} !== 'function') return false;
        const out = helper.{fn}({arg_list});
        return out === undefined ? true : Boolean(out);
    }})()
    """


class _Evaluator(Protocol):
    def evaluate(self, expression: str) -> Any: ...


class PageOverlay:
    """Overlay calls for one page; each returns False when the helper is absent."""

    def __init__(self, page: _Evaluator) -> None:
        self.page = page

    def show(self, status: str = "") -> bool:
        return bool(self.page.evaluate(_helper_call("showOverlay", status)))

    def hide(self) -> bool:
        return bool(self.page.evaluate(_helper_call("hideOverlay")))

    def update_status(self, status: str, shimmer: bool = False) -> bool:
        return bool(self.page.evaluate(_helper_call("updateOverlayStatus", status, bool(shimmer))))

    def highlight(self, selector: str) -> bool:
        return bool(self.page.evaluate(_helper_call("highlightElement", selector)))


class _Caller(Protocol):
    def call(self, action: str, params: dict[str, Any] | None = None, timeout: float | None = None) -> Any: ...


class OverlayNotifier:
    """Separate channel for overlay banners around slow actions.

    Failures are wrapped in OverlayError, logged and dropped: the primary
    action's outcome never depends on them.
    """

    def __init__(self, bridge: _Caller, *, enabled: bool = True, timeout: float = 2.0) -> None:
        self.bridge = bridge
        self.enabled = bool(enabled)
        self.timeout = float(timeout)

    def wants(self, action: str) -> bool:
        return self.enabled and action in OPERATION_STATUS

    def show(self, action: str) -> None:
        if not self.wants(action):
            return
        self._notify("show_overlay", {"status": OPERATION_STATUS[action]})

    def hide(self, action: str) -> None:
        if not self.wants(action):
            return
        self._notify("hide_overlay", {})

    def _notify(self, overlay_action: str, params: dict[str, Any]) -> None:
        try:
            try:
                self.bridge.call(overlay_action, params, timeout=self.timeout)
            except Exception as exc:
                raise OverlayError(f"{overlay_action} failed: {exc}") from exc
        except OverlayError as exc:
            logger.debug("overlay notification dropped: %s", exc)


__all__ = ["OPERATION_STATUS", "OverlayNotifier", "PageOverlay"]
