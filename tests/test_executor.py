from __future__ import annotations

import json
from collections.abc import Iterator

import pytest
from conftest import FakeHost

from mcp_servers.browser_agent.bridge import RpcBridge
from mcp_servers.browser_agent.browser_context import BrowserContext
from mcp_servers.browser_agent.config import AgentConfig
from mcp_servers.browser_agent.errors import RemoteActionError
from mcp_servers.browser_agent.executor import ActionExecutor
from mcp_servers.browser_agent.server.dispatch import ToolDispatcher


def test_handle_request_success_envelope(host: FakeHost) -> None:
    host.evaluate_fn = lambda expr: {"url": "about:blank", "title": ""}
    executor = ActionExecutor(BrowserContext(host), "ws://127.0.0.1:1")

    response = executor.handle_request({"type": "REQUEST", "id": "req_3", "action": "get_page_info", "params": {}})

    assert response == {
        "type": "RESPONSE",
        "id": "req_3",
        "payload": {"success": True, "data": {"url": "about:blank", "title": ""}},
    }


def test_handle_request_failure_envelope(host: FakeHost) -> None:
    executor = ActionExecutor(BrowserContext(host), "ws://127.0.0.1:1")

    unknown = executor.handle_request({"type": "REQUEST", "id": "req_1", "action": "teleport"})
    invalid = executor.handle_request({"type": "REQUEST", "id": "req_2", "action": "navigate", "params": {}})

    assert unknown["payload"] == {"success": False, "error": "Unknown action: teleport"}
    assert invalid["payload"] == {"success": False, "error": "URL is required"}


def test_handle_request_reports_missing_tab() -> None:
    executor = ActionExecutor(BrowserContext(FakeHost(tabs=[], active=None)), "ws://127.0.0.1:1")

    response = executor.handle_request({"type": "REQUEST", "id": "req_9", "action": "get_page_info"})

    assert response["payload"] == {"success": False, "error": "No active tab found"}


@pytest.fixture
def wired(host: FakeHost) -> Iterator[tuple[RpcBridge, ActionExecutor]]:
    bridge = RpcBridge(host="127.0.0.1", port=0, timeout=5.0)
    bridge.start()
    executor = ActionExecutor(BrowserContext(host, nav_timeout=0.2), f"ws://127.0.0.1:{bridge.port}")
    executor.start()
    try:
        assert bridge.wait_for_connection(timeout=5.0)
        yield bridge, executor
    finally:
        executor.stop()
        bridge.stop()


def test_bridge_to_executor_round_trip(host: FakeHost, wired: tuple[RpcBridge, ActionExecutor]) -> None:
    bridge, _executor = wired
    host.fire_load_on_navigate = True
    host.evaluate_fn = lambda expr: {"url": "https://example.com/", "title": "Example Domain"}

    result = bridge.call("navigate", {"url": "https://example.com"})

    assert result == {"url": "https://example.com/", "title": "Example Domain"}
    assert host.params_for("Page.navigate") == [{"url": "https://example.com"}]


def test_executor_errors_surface_as_remote_errors(host: FakeHost, wired: tuple[RpcBridge, ActionExecutor]) -> None:
    bridge, _executor = wired
    host.evaluate_fn = lambda expr: None

    with pytest.raises(RemoteActionError, match="Element not found: #missing"):
        bridge.call("click", {"selector": "#missing"})
    with pytest.raises(RemoteActionError, match="Unknown action: teleport"):
        bridge.call("teleport")
    assert bridge.pending_ids() == []


def test_executor_reconnects_after_bridge_restart(host: FakeHost, wired: tuple[RpcBridge, ActionExecutor]) -> None:
    bridge, executor = wired
    port = bridge.port
    bridge.stop()

    replacement = RpcBridge(host="127.0.0.1", port=port, timeout=5.0)
    replacement.start()
    try:
        assert replacement.wait_for_connection(timeout=10.0)
        host.evaluate_fn = lambda expr: 2
        assert replacement.call("evaluate", {"script": "1 + 1"}) == {"result": 2}
        assert executor.status()["connected"] is True
    finally:
        replacement.stop()


def test_navigate_without_load_event_still_answers_the_tool_call(host: FakeHost) -> None:
    # load never fires: the executor stops waiting after nav_timeout and reports the page
    config = AgentConfig(rpc_timeout=1.0, nav_timeout=1.0)
    host.evaluate_fn = lambda expr: {"url": "https://slow.example/", "title": "Slow"}
    bridge = RpcBridge(host="127.0.0.1", port=0, timeout=config.rpc_timeout)
    bridge.start()
    executor = ActionExecutor(BrowserContext(host, nav_timeout=config.nav_timeout), f"ws://127.0.0.1:{bridge.port}")
    executor.start()
    try:
        assert bridge.wait_for_connection(timeout=5.0)
        dispatcher = ToolDispatcher(bridge, timeouts=config.action_timeouts())

        response = dispatcher.invoke("browser_navigate", {"url": "https://slow.example"}).to_response()
        assert bridge.pending_ids() == []
    finally:
        executor.stop()
        bridge.stop()

    assert response["isError"] is False
    assert json.loads(response["content"][0]["text"]) == {"url": "https://slow.example/", "title": "Slow"}


def _two_tab_host() -> FakeHost:
    return FakeHost(
        tabs=[
            {"id": "t1", "url": "https://a.example/", "title": "A"},
            {"id": "t2", "url": "https://b.example/", "title": "B"},
        ],
        active="t1",
    )


def test_closed_active_tab_is_forgotten_and_next_request_uses_browser_focus() -> None:
    host = _two_tab_host()
    host.evaluate_fn = lambda expr: {"url": "https://b.example/", "title": "B"}
    ctx = BrowserContext(host)
    executor = ActionExecutor(ctx, "ws://127.0.0.1:1")
    assert executor.handle_request({"type": "REQUEST", "id": "req_1", "action": "get_page_info"})["payload"]["success"]
    assert ctx.active_tab_id == "t1"

    # the user closes t1; the browser focuses t2 and drops the session
    host.tabs = [t for t in host.tabs if t["id"] != "t1"]
    host.active = "t2"
    host.force_detach("t1")

    assert "t1" not in ctx
    assert ctx.active_tab_id is None

    response = executor.handle_request({"type": "REQUEST", "id": "req_2", "action": "get_page_info"})

    assert response["payload"] == {"success": True, "data": {"url": "https://b.example/", "title": "B"}}
    assert host.attach_calls[-1] == "t2"
    assert ctx.active_tab_id == "t2"


def test_detach_of_a_still_open_tab_keeps_it_registered() -> None:
    host = _two_tab_host()
    host.evaluate_fn = lambda expr: {"url": "https://a.example/", "title": "A"}
    ctx = BrowserContext(host)
    executor = ActionExecutor(ctx, "ws://127.0.0.1:1")
    executor.handle_request({"type": "REQUEST", "id": "req_1", "action": "get_page_info"})

    # DevTools took the target; the tab itself is still open
    host.force_detach("t1", reason="replaced_with_devtools")

    assert "t1" in ctx
    assert ctx.active_tab_id == "t1"
    response = executor.handle_request({"type": "REQUEST", "id": "req_2", "action": "get_page_info"})
    assert response["payload"]["success"] is True
    assert host.attach_calls == ["t1", "t1"]
