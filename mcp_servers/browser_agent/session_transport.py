"""Session transport: one remote-debugging session bound to one tab.

The host capability (whatever actually owns the debugger) is consumed through
`HostCapability`; `cdp_host.CdpHost` is the concrete implementation and tests
plug in a fake.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from contextlib import suppress
from typing import Any, Protocol

from .errors import AttachmentError, HostCommandError, HostDetachedError, HostError, ProtocolError

logger = logging.getLogger("browser_agent.transport")

DETACHED = "detached"
ATTACHING = "attaching"
ATTACHED = "attached"

EventCallback = Callable[[str, dict[str, Any]], None]


class HostListener(Protocol):
    def on_host_event(self, target_id: str, method: str, params: dict[str, Any]) -> None: ...

    def on_host_detach(self, target_id: str, reason: str) -> None: ...


class HostCapability(Protocol):
    """What the executor needs from the process that owns the browser debugger."""

    def attach(self, target_id: str) -> None: ...

    def detach(self, target_id: str) -> None: ...

    def send_command(self, target_id: str, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]: ...

    def add_listener(self, listener: HostListener) -> None: ...

    def remove_listener(self, listener: HostListener) -> None: ...

    def list_tabs(self) -> list[dict[str, Any]]: ...

    def get_active_tab(self) -> str | None: ...

    def activate_tab(self, target_id: str) -> None: ...


class SessionTransport:
    """Stateful debug session for a single target.

    Commands are only accepted while attached. A forced detach reported by the
    host flips the state to detached so later sends fail instead of hanging.
    """

    def __init__(self, host: HostCapability, target_id: str) -> None:
        self.host = host
        self.target_id = str(target_id)
        self._state = DETACHED
        self._lock = threading.Lock()
        self._subscribers: dict[int, EventCallback] = {}
        self._tokens = itertools.count(1)

    @property
    def state(self) -> str:
        return self._state

    def is_attached(self) -> bool:
        return self._state == ATTACHED

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def attach(self) -> None:
        with self._lock:
            if self._state != DETACHED:
                return
            self._state = ATTACHING

        try:
            self.host.add_listener(self)
            self.host.attach(self.target_id)
        except Exception as exc:
            with suppress(Exception):
                self.host.remove_listener(self)
            with self._lock:
                self._state = DETACHED
            raise AttachmentError(f"Failed to attach to tab {self.target_id}: {exc}") from exc

        with self._lock:
            self._state = ATTACHED
        logger.debug("attached target=%s", self.target_id)

    def detach(self) -> None:
        with self._lock:
            if self._state == DETACHED:
                return
            self._state = DETACHED

        with suppress(Exception):
            self.host.remove_listener(self)
        try:
            self.host.detach(self.target_id)
        except HostDetachedError:
            # Already gone on the host side (tab closed, user opened devtools, ...).
            pass
        logger.debug("detached target=%s", self.target_id)

    # ─────────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────────

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if self._state != ATTACHED:
            raise AttachmentError(f"Debugger not attached (tab {self.target_id})")
        try:
            result = self.host.send_command(self.target_id, method, params)
        except HostDetachedError as exc:
            self._mark_detached(str(exc) or "detached during command")
            raise AttachmentError(f"Debugger detached from tab {self.target_id}") from exc
        except HostCommandError as exc:
            raise ProtocolError(method, exc.message, code=exc.code) from exc
        except HostError as exc:
            raise ProtocolError(method, str(exc)) from exc
        return result if isinstance(result, dict) else {}

    # ─────────────────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────────────────

    def on(self, callback: EventCallback) -> int:
        """Subscribe to protocol events for this target; returns a token for `off`."""
        with self._lock:
            token = next(self._tokens)
            self._subscribers[token] = callback
        return token

    def off(self, token: int) -> None:
        with self._lock:
            self._subscribers.pop(token, None)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def on_host_event(self, target_id: str, method: str, params: dict[str, Any]) -> None:
        if str(target_id) != self.target_id:
            return
        with self._lock:
            callbacks = list(self._subscribers.values())
        for cb in callbacks:
            try:
                cb(method, params if isinstance(params, dict) else {})
            except Exception:
                logger.exception("event subscriber failed target=%s method=%s", self.target_id, method)

    def on_host_detach(self, target_id: str, reason: str) -> None:
        if str(target_id) != self.target_id:
            return
        self._mark_detached(reason)

    def _mark_detached(self, reason: str) -> None:
        with self._lock:
            if self._state == DETACHED:
                return
            self._state = DETACHED
        with suppress(Exception):
            self.host.remove_listener(self)
        logger.info("debugger detached target=%s reason=%s", self.target_id, reason)


__all__ = [
    "ATTACHED",
    "ATTACHING",
    "DETACHED",
    "EventCallback",
    "HostCapability",
    "HostListener",
    "SessionTransport",
]
