"""Console log capture for a single page.

Entries are collected host-side from CDP events (Runtime.consoleAPICalled,
Runtime.exceptionThrown, Log.entryAdded) into a bounded ring.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any

MAX_CONSOLE_ENTRIES = 1000

# Installed once per document; the marker keeps repeated installs from stacking listeners.
CONSOLE_HOOK_MARKER = "__browserAgentConsoleHook"
CONSOLE_HOOK_JS = f"""
(() => {{
    if (window.{CONSOLE_HOOK_MARKER}) return false;
    window.{CONSOLE_HOOK_MARKER} = true;
    window.addEventListener('unhandledrejection', (event) => {{
        console.error('Unhandled Promise Rejection: ' + String(event.reason));
    }});
    return true;
}})()
"""

_LEVELS = {
    "log": "log",
    "info": "info",
    "warning": "warn",
    "warn": "warn",
    "error": "error",
    "assert": "error",
    "debug": "debug",
    "verbose": "debug",
    "trace": "debug",
}


class ConsoleLogBuffer:
    """Ring of console entries; appending past capacity evicts the oldest entry."""

    def __init__(self, capacity: int = MAX_CONSOLE_ENTRIES) -> None:
        self.capacity = max(1, int(capacity))
        self._entries: deque[dict[str, Any]] = deque(maxlen=self.capacity)
        self._lock = threading.Lock()

    def append(self, entry: dict[str, Any]) -> None:
        with self._lock:
            self._entries.append(entry)

    def drain(self) -> list[dict[str, Any]]:
        """Return every buffered entry and clear the ring in one step."""
        with self._lock:
            out = list(self._entries)
            self._entries.clear()
        return out

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _remote_object_text(obj: Any) -> str:
    if not isinstance(obj, dict):
        return str(obj)
    if "value" in obj:
        value = obj.get("value")
        return value if isinstance(value, str) else str(value)
    if isinstance(obj.get("unserializableValue"), str):
        return obj["unserializableValue"]
    if isinstance(obj.get("description"), str):
        return obj["description"]
    return str(obj.get("type") or "")


def exception_text(details: dict[str, Any]) -> str:
    """Human-readable message for a CDP exceptionDetails object."""
    exc = details.get("exception") if isinstance(details, dict) else None
    if isinstance(exc, dict):
        desc = exc.get("description")
        if isinstance(desc, str) and desc.strip():
            # description carries the stack after the first line
            return desc.strip().splitlines()[0]
        if "value" in exc:
            return f"Uncaught {exc.get('value')}"
    text = details.get("text") if isinstance(details, dict) else None
    return str(text or "Script evaluation failed")


def entry_from_event(method: str, params: dict[str, Any]) -> dict[str, Any] | None:
    """Convert a CDP console-ish event into a buffer entry; None for unrelated events."""
    if method == "Runtime.consoleAPICalled":
        args = params.get("args") if isinstance(params.get("args"), list) else []
        entry: dict[str, Any] = {
            "type": _LEVELS.get(str(params.get("type") or "log"), "log"),
            "text": " ".join(_remote_object_text(a) for a in args),
            "timestamp": int(params.get("timestamp") or _now_ms()),
        }
        frames = (params.get("stackTrace") or {}).get("callFrames") if isinstance(params.get("stackTrace"), dict) else None
        if isinstance(frames, list) and frames and isinstance(frames[0], dict):
            if frames[0].get("url"):
                entry["url"] = frames[0]["url"]
            if isinstance(frames[0].get("lineNumber"), int):
                entry["lineNumber"] = frames[0]["lineNumber"]
        return entry

    if method == "Runtime.exceptionThrown":
        details = params.get("exceptionDetails") if isinstance(params.get("exceptionDetails"), dict) else {}
        entry = {
            "type": "error",
            "text": exception_text(details),
            "timestamp": int(params.get("timestamp") or _now_ms()),
        }
        if details.get("url"):
            entry["url"] = details["url"]
        if isinstance(details.get("lineNumber"), int):
            entry["lineNumber"] = details["lineNumber"]
        return entry

    if method == "Log.entryAdded":
        raw = params.get("entry") if isinstance(params.get("entry"), dict) else {}
        entry = {
            "type": _LEVELS.get(str(raw.get("level") or "info"), "info"),
            "text": str(raw.get("text") or ""),
            "timestamp": int(raw.get("timestamp") or _now_ms()),
        }
        if raw.get("url"):
            entry["url"] = raw["url"]
        if isinstance(raw.get("lineNumber"), int):
            entry["lineNumber"] = raw["lineNumber"]
        return entry

    return None


__all__ = [
    "CONSOLE_HOOK_JS",
    "CONSOLE_HOOK_MARKER",
    "MAX_CONSOLE_ENTRIES",
    "ConsoleLogBuffer",
    "entry_from_event",
    "exception_text",
]
