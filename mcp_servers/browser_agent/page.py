"""Page controller: high-level browser operations for one tab.

Wraps a SessionTransport with the operations the executor exposes (navigate,
click, type, scroll, screenshot, evaluate, select, console capture).
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any

from .console_capture import CONSOLE_HOOK_JS, ConsoleLogBuffer, entry_from_event, exception_text
from .errors import BrowserAgentError, ElementNotFoundError, EvaluationError, InvalidParamsError, NavigationTimeoutError
from .session_transport import HostCapability, SessionTransport

logger = logging.getLogger("browser_agent.page")

DEFAULT_NAVIGATION_TIMEOUT = 30.0
DEFAULT_SCROLL_DISTANCE = 500
SCREENSHOT_FORMATS = ("png", "jpeg", "webp")
SCROLL_DIRECTIONS = ("up", "down", "left", "right")
MOUSE_BUTTONS = ("left", "right", "middle")

_KEY_CODES = {
    "Enter": 13,
    "Tab": 9,
    "Escape": 27,
    "Backspace": 8,
    "Delete": 46,
    "ArrowUp": 38,
    "ArrowDown": 40,
    "ArrowLeft": 37,
    "ArrowRight": 39,
    "Home": 36,
    "End": 35,
    "PageUp": 33,
    "PageDown": 34,
    " ": 32,
}
_KEY_TEXT = {"Enter": "\r", " ": " "}


def _pick_option(
    options: list[dict[str, Any]],
    *,
    value: str | None = None,
    text: str | None = None,
    index: int | None = None,
) -> int | None:
    """Resolve an option index: value first, then text, then index."""
    if value is not None:
        for i, opt in enumerate(options):
            if opt.get("value") == value:
                return i
    if text is not None:
        for i, opt in enumerate(options):
            if opt.get("text") == text:
                return i
    if index is not None and 0 <= index < len(options):
        return index
    return None


class NavigationWait:
    """One armed wait for `Page.loadEventFired`.

    Arm it before issuing the navigation so a fast load cannot slip past the
    subscription. The subscription token is released on every exit path.
    """

    def __init__(self, page: Page) -> None:
        self._page = page
        self._fired = threading.Event()
        self._done = False
        self._token = page.transport.on(self._on_event)

    def _on_event(self, method: str, params: dict[str, Any]) -> None:  # noqa: ARG002
        if method == "Page.loadEventFired":
            self._fired.set()

    def wait(self, timeout: float | None = None) -> None:
        try:
            limit = self._page.nav_timeout if timeout is None else max(0.0, float(timeout))
            if not self._fired.wait(limit):
                raise NavigationTimeoutError("Navigation timeout")
        finally:
            self.cancel()

    def cancel(self) -> None:
        if self._done:
            return
        self._done = True
        self._page.transport.off(self._token)
        self._page._release_navigation_wait()  # noqa: SLF001


class Page:
    """High-level operations for one tab, built from protocol commands and page scripts."""

    def __init__(self, host: HostCapability, target_id: str, *, nav_timeout: float = DEFAULT_NAVIGATION_TIMEOUT) -> None:
        self.target_id = str(target_id)
        self.transport = SessionTransport(host, self.target_id)
        self.nav_timeout = float(nav_timeout)
        self.initialized = False
        self.console = ConsoleLogBuffer()
        self._console_token: int | None = None
        self._console_lock = threading.Lock()
        self._nav_lock = threading.Lock()

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Attach and enable the domains the operations rely on.

        Re-runs after a forced detach so the page can be used again.
        """
        if self.initialized and self.transport.is_attached():
            return
        self.transport.attach()
        for domain in ("Page", "DOM", "Runtime"):
            self.transport.send(f"{domain}.enable")
        if self._console_token is not None:
            # Capture was on before the session dropped; the subscription survived, the domain did not.
            self.transport.send("Log.enable")
        self.initialized = True

    def close(self) -> None:
        if not self.initialized and not self.transport.is_attached():
            return
        with self._console_lock:
            if self._console_token is not None:
                self.transport.off(self._console_token)
                self._console_token = None
        self.initialized = False
        self.transport.detach()

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def navigate(self, url: str) -> dict[str, Any]:
        """Start a navigation; does not wait for load."""
        result = self.transport.send("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if isinstance(error_text, str) and error_text:
            raise BrowserAgentError(f"Navigation to {url} failed: {error_text}")
        return {"frameId": result.get("frameId"), "loaderId": result.get("loaderId")}

    def expect_navigation(self) -> NavigationWait:
        if not self._nav_lock.acquire(blocking=False):
            raise BrowserAgentError(f"A navigation wait is already pending for tab {self.target_id}")
        try:
            return NavigationWait(self)
        except Exception:
            self._nav_lock.release()
            raise

    def wait_for_navigation(self, timeout: float | None = None) -> None:
        self.expect_navigation().wait(timeout)

    def _release_navigation_wait(self) -> None:
        if self._nav_lock.locked():
            self._nav_lock.release()

    def _history(self) -> tuple[int, list[dict[str, Any]]]:
        history = self.transport.send("Page.getNavigationHistory")
        entries = history.get("entries") if isinstance(history.get("entries"), list) else []
        return int(history.get("currentIndex") or 0), entries

    def go_back(self) -> bool:
        current, entries = self._history()
        if current <= 0:
            return False
        self.transport.send("Page.navigateToHistoryEntry", {"entryId": entries[current - 1]["id"]})
        return True

    def go_forward(self) -> bool:
        current, entries = self._history()
        if current >= len(entries) - 1:
            return False
        self.transport.send("Page.navigateToHistoryEntry", {"entryId": entries[current + 1]["id"]})
        return True

    def reload(self, ignore_cache: bool = False) -> None:
        self.transport.send("Page.reload", {"ignoreCache": bool(ignore_cache)})

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    def evaluate(self, expression: str) -> Any:
        """Evaluate in page context; values come back by value.

        Undefined and null both map to None.
        """
        result = self.transport.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            raise EvaluationError(exception_text(details))
        remote = result.get("result")
        if not isinstance(remote, dict):
            return None
        return remote.get("value")

    def get_page_info(self) -> dict[str, str]:
        info = self.evaluate("({ url: window.location.href, title: document.title })") or {}
        return {"url": str(info.get("url") or ""), "title": str(info.get("title") or "")}

    def get_viewport_size(self) -> dict[str, int]:
        size = self.evaluate("({ width: window.innerWidth, height: window.innerHeight })") or {}
        return {"width": int(size.get("width") or 0), "height": int(size.get("height") or 0)}

    def extract(self, selector: str) -> dict[str, str]:
        js = f"""
        (() => {{
            const el = document.querySelector({json.dumps(selector)});
            if (!el) return null;
            return {{ text: (el.textContent || '').trim(), html: el.outerHTML }};
        }})()
        """
        result = self.evaluate(js)
        if not isinstance(result, dict):
            raise ElementNotFoundError(selector)
        return {"text": str(result.get("text") or ""), "html": str(result.get("html") or "")}

    # ─────────────────────────────────────────────────────────────────────────
    # Mouse
    # ─────────────────────────────────────────────────────────────────────────

    def click_at(self, x: float, y: float, *, button: str = "left", click_count: int = 1) -> None:
        if button not in MOUSE_BUTTONS:
            raise InvalidParamsError(f"Unsupported mouse button: {button}")
        self.transport.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y})
        for event_type in ("mousePressed", "mouseReleased"):
            self.transport.send(
                "Input.dispatchMouseEvent",
                {"type": event_type, "x": x, "y": y, "button": button, "clickCount": click_count},
            )

    def click_element(self, selector: str) -> dict[str, str]:
        js = f"""
        (() => {{
            const el = document.querySelector({json.dumps(selector)});
            if (!el) return null;
            const rect = el.getBoundingClientRect();
            return {{
                x: rect.left + rect.width / 2,
                y: rect.top + rect.height / 2,
                tagName: el.tagName,
                text: (el.textContent || '').slice(0, 100)
            }};
        }})()
        """
        info = self.evaluate(js)
        if not isinstance(info, dict):
            raise ElementNotFoundError(selector)
        self.click_at(info["x"], info["y"])
        return {"tagName": str(info.get("tagName") or ""), "text": str(info.get("text") or "")}

    def move_mouse(self, x: float, y: float, steps: int = 1) -> None:
        if steps <= 1:
            self.transport.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y})
            return
        viewport = self.get_viewport_size()
        cur_x = viewport["width"] / 2
        cur_y = viewport["height"] / 2
        dx = (x - cur_x) / steps
        dy = (y - cur_y) / steps
        for _ in range(steps):
            cur_x += dx
            cur_y += dy
            self.transport.send(
                "Input.dispatchMouseEvent",
                {"type": "mouseMoved", "x": round(cur_x), "y": round(cur_y)},
            )
            time.sleep(0.01)

    # ─────────────────────────────────────────────────────────────────────────
    # Keyboard
    # ─────────────────────────────────────────────────────────────────────────

    def type_text(self, text: str, delay_ms: float = 0) -> None:
        """Insert text; with a delay, one character per command with pauses between them."""
        if not delay_ms or delay_ms <= 0:
            self.transport.send("Input.insertText", {"text": text})
            return
        for i, char in enumerate(text):
            if i:
                time.sleep(delay_ms / 1000.0)
            self.transport.send("Input.insertText", {"text": char})

    def type_in_element(self, selector: str, text: str, *, clear_first: bool = False, delay_ms: float = 0) -> None:
        self.click_element(selector)
        if clear_first:
            js = f"""
            (() => {{
                const el = document.querySelector({json.dumps(selector)});
                if (!el) return false;
                if (el.tagName === 'INPUT' || el.tagName === 'TEXTAREA') {{
                    el.value = '';
                }} else {{
                    el.textContent = '';
                }}
                return true;
            }})()
            """
            self.evaluate(js)
        self.type_text(text, delay_ms)

    def press_key(self, key: str) -> None:
        if not key:
            raise InvalidParamsError("key is required")
        params: dict[str, Any] = {"key": key}
        code = _KEY_CODES.get(key, ord(key.upper()) if len(key) == 1 else 0)
        if code:
            params["windowsVirtualKeyCode"] = code
        if key in _KEY_TEXT:
            params["text"] = _KEY_TEXT[key]
        elif len(key) == 1:
            params["text"] = key
        self.transport.send("Input.dispatchKeyEvent", {"type": "keyDown", **params})
        self.transport.send("Input.dispatchKeyEvent", {"type": "keyUp", "key": key, **({"windowsVirtualKeyCode": code} if code else {})})

    # ─────────────────────────────────────────────────────────────────────────
    # Scrolling
    # ─────────────────────────────────────────────────────────────────────────

    def scroll(self, direction: str, distance: float = DEFAULT_SCROLL_DISTANCE) -> dict[str, float]:
        """Wheel-scroll and return the position the page actually settled on."""
        if direction not in SCROLL_DIRECTIONS:
            raise InvalidParamsError(f"Unsupported scroll direction: {direction}")
        delta_x = 0.0
        delta_y = 0.0
        if direction == "up":
            delta_y = -distance
        elif direction == "down":
            delta_y = distance
        elif direction == "left":
            delta_x = -distance
        else:
            delta_x = distance

        self.transport.send(
            "Input.dispatchMouseEvent",
            {"type": "mouseWheel", "x": 400, "y": 300, "deltaX": delta_x, "deltaY": delta_y},
        )
        pos = self.evaluate("({ x: window.scrollX, y: window.scrollY })") or {}
        return {"x": pos.get("x", 0), "y": pos.get("y", 0)}

    def scroll_to_element(self, selector: str) -> None:
        js = f"""
        (() => {{
            const el = document.querySelector({json.dumps(selector)});
            if (!el) return false;
            el.scrollIntoView({{ behavior: 'smooth', block: 'center' }});
            return true;
        }})()
        """
        if not self.evaluate(js):
            raise ElementNotFoundError(selector)

    def scroll_to(self, x: float, y: float) -> None:
        self.evaluate(f"window.scrollTo({json.dumps(x)}, {json.dumps(y)})")

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots
    # ─────────────────────────────────────────────────────────────────────────

    def capture_screenshot(
        self,
        *,
        format: str = "png",
        quality: int | None = None,
        capture_beyond_viewport: bool = False,
    ) -> str:
        """Capture the viewport (or the whole document) and return base64 image data."""
        if format not in SCREENSHOT_FORMATS:
            raise InvalidParamsError(f"Unsupported screenshot format: {format}")
        params: dict[str, Any] = {"format": format}
        if quality is not None and format != "png":
            params["quality"] = max(0, min(int(quality), 100))
        if capture_beyond_viewport:
            metrics = self.transport.send("Page.getLayoutMetrics")
            content = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
            width = content.get("width")
            height = content.get("height")
            if width and height:
                params["clip"] = {"x": 0, "y": 0, "width": width, "height": height, "scale": 1}
            params["captureBeyondViewport"] = True
        result = self.transport.send("Page.captureScreenshot", params)
        return str(result.get("data") or "")

    # ─────────────────────────────────────────────────────────────────────────
    # Forms
    # ─────────────────────────────────────────────────────────────────────────

    def select_option(
        self,
        selector: str,
        *,
        value: str | None = None,
        text: str | None = None,
        index: int | None = None,
    ) -> dict[str, str]:
        if value is None and text is None and index is None:
            raise InvalidParamsError("value, text or index is required")

        sel = json.dumps(selector)
        probe = self.evaluate(
            f"""
            (() => {{
                const el = document.querySelector({sel});
                if (!el) return null;
                if (el.tagName !== 'SELECT') return {{ isSelect: false, options: [] }};
                return {{
                    isSelect: true,
                    options: Array.from(el.options).map(o => ({{ value: o.value, text: o.text }}))
                }};
            }})()
            """
        )
        if not isinstance(probe, dict):
            raise ElementNotFoundError(selector)
        if not probe.get("isSelect"):
            raise BrowserAgentError(f"Element is not a SELECT: {selector}")

        options = probe.get("options") if isinstance(probe.get("options"), list) else []
        picked = _pick_option(options, value=value, text=text, index=index)
        if picked is None:
            raise BrowserAgentError(f"Option not found: {selector}")

        chosen = self.evaluate(
            f"""
            (() => {{
                const el = document.querySelector({sel});
                if (!el || el.tagName !== 'SELECT') return null;
                const opt = el.options[{picked}];
                if (!opt) return null;
                el.value = opt.value;
                el.selectedIndex = {picked};
                el.dispatchEvent(new Event('change', {{ bubbles: true }}));
                el.dispatchEvent(new Event('input', {{ bubbles: true }}));
                return {{ value: opt.value, text: opt.text }};
            }})()
            """
        )
        if not isinstance(chosen, dict):
            raise BrowserAgentError(f"Option not found: {selector}")
        return {"value": str(chosen.get("value") or ""), "text": str(chosen.get("text") or "")}

    # ─────────────────────────────────────────────────────────────────────────
    # Console capture
    # ─────────────────────────────────────────────────────────────────────────

    def enable_console_capture(self) -> None:
        with self._console_lock:
            if self._console_token is None:
                self.transport.send("Runtime.enable")
                self.transport.send("Log.enable")
                self._console_token = self.transport.on(self._on_console_event)
        # Page-side hook is per document, so it is re-checked on every call.
        self.evaluate(CONSOLE_HOOK_JS)

    def get_console_logs(self) -> list[dict[str, Any]]:
        if self._console_token is None:
            self.enable_console_capture()
        return self.console.drain()

    def _on_console_event(self, method: str, params: dict[str, Any]) -> None:
        entry = entry_from_event(method, params)
        if entry is not None:
            self.console.append(entry)


__all__ = ["DEFAULT_NAVIGATION_TIMEOUT", "NavigationWait", "Page"]
