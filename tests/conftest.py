from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from mcp_servers.browser_agent.errors import HostDetachedError


class FakeHost:
    """In-memory HostCapability.

    `responses` maps a protocol method to a dict result, an exception to raise,
    or a callable(params) returning either. `Runtime.evaluate` is routed to
    `evaluate_fn(expression)` when set.
    """

    def __init__(self, tabs: list[dict[str, Any]] | None = None, active: str | None = "t1") -> None:
        self.tabs = tabs if tabs is not None else [{"id": "t1", "url": "about:blank", "title": ""}]
        self.active = active
        self.attached: set[str] = set()
        self.attach_calls: list[str] = []
        self.detach_calls: list[str] = []
        self.activate_calls: list[str] = []
        self.commands: list[tuple[str, str, dict[str, Any] | None]] = []
        self.responses: dict[str, Any] = {}
        self.evaluate_fn: Callable[[str], Any] | None = None
        self.attach_error: Exception | None = None
        self.fire_load_on_navigate = False
        self.listeners: list[Any] = []

    # HostCapability

    def attach(self, target_id: str) -> None:
        self.attach_calls.append(target_id)
        if self.attach_error is not None:
            raise self.attach_error
        self.attached.add(target_id)

    def detach(self, target_id: str) -> None:
        self.detach_calls.append(target_id)
        if target_id not in self.attached:
            raise HostDetachedError(f"{target_id} is not attached")
        self.attached.discard(target_id)

    def send_command(self, target_id: str, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if target_id not in self.attached:
            raise HostDetachedError(f"{target_id} is not attached")
        self.commands.append((target_id, method, params))

        if method == "Runtime.evaluate" and self.evaluate_fn is not None and method not in self.responses:
            value = self.evaluate_fn((params or {}).get("expression", ""))
            if value is None:
                return {"result": {"type": "undefined"}}
            return {"result": {"type": "object", "value": value}}

        res = self.responses.get(method, {})
        if callable(res):
            res = res(params or {})
        if isinstance(res, Exception):
            raise res
        if method == "Page.navigate" and self.fire_load_on_navigate:
            self.emit(target_id, "Page.loadEventFired", {"timestamp": 1.0})
        return res

    def add_listener(self, listener: Any) -> None:
        if listener not in self.listeners:
            self.listeners.append(listener)

    def remove_listener(self, listener: Any) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def list_tabs(self) -> list[dict[str, Any]]:
        return [dict(t, active=t["id"] == self.active) for t in self.tabs]

    def get_active_tab(self) -> str | None:
        return self.active

    def activate_tab(self, target_id: str) -> None:
        self.activate_calls.append(target_id)
        self.active = target_id

    # Test helpers

    def emit(self, target_id: str, method: str, params: dict[str, Any] | None = None) -> None:
        for listener in list(self.listeners):
            listener.on_host_event(target_id, method, params or {})

    def force_detach(self, target_id: str, reason: str = "target_closed") -> None:
        self.attached.discard(target_id)
        for listener in list(self.listeners):
            listener.on_host_detach(target_id, reason)

    def methods(self, target_id: str | None = None) -> list[str]:
        return [m for (t, m, _p) in self.commands if target_id is None or t == target_id]

    def params_for(self, method: str) -> list[dict[str, Any]]:
        return [p or {} for (_t, m, p) in self.commands if m == method]


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


__all__ = ["FakeHost"]
