from __future__ import annotations

import pytest
from conftest import FakeHost

from mcp_servers.browser_agent.browser_context import BrowserContext
from mcp_servers.browser_agent.errors import BrowserAgentError
from mcp_servers.browser_agent.session_transport import ATTACHED, DETACHED


def _two_tabs() -> FakeHost:
    return FakeHost(
        tabs=[
            {"id": "t1", "url": "https://a.example/", "title": "A"},
            {"id": "t2", "url": "https://b.example/", "title": "B"},
        ],
        active="t1",
    )


def test_get_active_page_is_lazy_and_uses_host_active_tab() -> None:
    host = _two_tabs()
    ctx = BrowserContext(host)
    assert host.attach_calls == []

    page = ctx.get_active_page()

    assert page.target_id == "t1"
    assert ctx.active_tab_id == "t1"
    assert page.transport.state == ATTACHED
    assert ctx.get_active_page() is page
    assert host.attach_calls == ["t1"]


def test_get_active_page_without_any_tab_fails() -> None:
    ctx = BrowserContext(FakeHost(tabs=[], active=None))
    with pytest.raises(BrowserAgentError, match="No active tab found"):
        ctx.get_active_page()


def test_switch_moves_pointer_without_attaching() -> None:
    host = _two_tabs()
    ctx = BrowserContext(host)

    ctx.switch_to_tab("t2")

    assert ctx.active_tab_id == "t2"
    assert "t2" not in ctx
    assert host.attach_calls == []
    assert host.activate_calls == ["t2"]

    assert ctx.get_active_page().target_id == "t2"
    assert host.attach_calls == ["t2"]


def test_switch_to_unknown_tab_fails_and_keeps_pointer() -> None:
    host = _two_tabs()
    ctx = BrowserContext(host)
    ctx.get_active_page()

    with pytest.raises(BrowserAgentError, match="Tab t9 not found"):
        ctx.switch_to_tab("t9")
    assert ctx.active_tab_id == "t1"


def test_switch_survives_activation_failure() -> None:
    host = _two_tabs()

    def boom(target_id: str) -> None:
        raise RuntimeError("window gone")

    host.activate_tab = boom  # type: ignore[method-assign]
    ctx = BrowserContext(host)

    ctx.switch_to_tab("t2")
    assert ctx.active_tab_id == "t2"


def test_remove_closed_tab_after_host_lost_it() -> None:
    host = _two_tabs()
    ctx = BrowserContext(host)
    page = ctx.get_page("t1")
    assert page.transport.state == ATTACHED

    # tab closed in the browser: the host no longer knows the session
    host.attached.discard("t1")
    ctx.remove_closed_tab("t1")

    assert page.transport.state == DETACHED
    assert "t1" not in ctx
    assert ctx.active_tab_id is None


def test_remove_closed_tab_for_unknown_tab_is_noop() -> None:
    host = _two_tabs()
    ctx = BrowserContext(host)
    ctx.remove_closed_tab("t7")
    assert host.detach_calls == []


def test_get_all_tabs_info_reports_active_flag() -> None:
    ctx = BrowserContext(_two_tabs())

    assert ctx.get_all_tabs_info() == [
        {"id": "t1", "url": "https://a.example/", "title": "A", "active": True},
        {"id": "t2", "url": "https://b.example/", "title": "B", "active": False},
    ]


def test_close_all_detaches_every_page() -> None:
    host = _two_tabs()
    ctx = BrowserContext(host)
    ctx.get_page("t1")
    ctx.get_page("t2")

    ctx.close_all()

    assert sorted(host.detach_calls) == ["t1", "t2"]
    assert "t1" not in ctx
    assert ctx.active_tab_id is None


def test_detach_keeps_tab_when_tab_list_is_unavailable() -> None:
    host = _two_tabs()
    ctx = BrowserContext(host)
    ctx.get_active_page()

    def unreachable() -> list[dict[str, str]]:
        raise RuntimeError("endpoint down")

    host.list_tabs = unreachable  # type: ignore[method-assign]
    host.force_detach("t1")

    assert "t1" in ctx
    assert ctx.active_tab_id == "t1"


def test_close_all_stops_listening_to_host() -> None:
    host = _two_tabs()
    ctx = BrowserContext(host)
    assert ctx in host.listeners

    ctx.close_all()

    assert ctx not in host.listeners
