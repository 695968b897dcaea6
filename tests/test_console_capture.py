from __future__ import annotations

from mcp_servers.browser_agent.console_capture import (
    MAX_CONSOLE_ENTRIES,
    ConsoleLogBuffer,
    entry_from_event,
    exception_text,
)


def test_buffer_evicts_oldest_past_capacity() -> None:
    buf = ConsoleLogBuffer()
    for i in range(MAX_CONSOLE_ENTRIES + 5):
        buf.append({"type": "log", "text": str(i), "timestamp": i})

    assert len(buf) == MAX_CONSOLE_ENTRIES
    entries = buf.drain()
    assert entries[0]["text"] == "5"
    assert entries[-1]["text"] == str(MAX_CONSOLE_ENTRIES + 4)


def test_drain_empties_buffer() -> None:
    buf = ConsoleLogBuffer(capacity=3)
    buf.append({"type": "log", "text": "a", "timestamp": 1})

    assert [e["text"] for e in buf.drain()] == ["a"]
    assert buf.drain() == []
    assert len(buf) == 0


def test_console_api_event_joins_args_and_maps_level() -> None:
    entry = entry_from_event(
        "Runtime.consoleAPICalled",
        {
            "type": "warning",
            "args": [{"type": "string", "value": "count"}, {"type": "number", "value": 3}],
            "timestamp": 1700000000000,
            "stackTrace": {"callFrames": [{"url": "https://example.com/app.js", "lineNumber": 41}]},
        },
    )

    assert entry == {
        "type": "warn",
        "text": "count 3",
        "timestamp": 1700000000000,
        "url": "https://example.com/app.js",
        "lineNumber": 41,
    }


def test_exception_event_is_an_error_entry() -> None:
    entry = entry_from_event(
        "Runtime.exceptionThrown",
        {
            "timestamp": 5,
            "exceptionDetails": {
                "text": "Uncaught",
                "exception": {"description": "TypeError: x is undefined\n    at f (app.js:1:1)"},
                "url": "app.js",
                "lineNumber": 0,
            },
        },
    )

    assert entry is not None
    assert entry["type"] == "error"
    assert entry["text"] == "TypeError: x is undefined"
    assert entry["lineNumber"] == 0


def test_log_entry_event() -> None:
    entry = entry_from_event("Log.entryAdded", {"entry": {"level": "verbose", "text": "x", "timestamp": 9}})
    assert entry == {"type": "debug", "text": "x", "timestamp": 9}


def test_unrelated_event_is_ignored() -> None:
    assert entry_from_event("Page.loadEventFired", {}) is None


def test_exception_text_fallbacks() -> None:
    assert exception_text({"exception": {"type": "string", "value": "oops"}}) == "Uncaught oops"
    assert exception_text({"text": "SyntaxError"}) == "SyntaxError"
    assert exception_text({}) == "Script evaluation failed"
