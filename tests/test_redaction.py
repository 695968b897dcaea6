from __future__ import annotations

from mcp_servers.browser_agent.server.redaction import (
    is_sensitive_key,
    redact_jsonrpc_for_log,
    redact_tool_arguments,
    redact_url,
)


def test_sensitive_keys() -> None:
    assert is_sensitive_key("access_token")
    assert is_sensitive_key("Authorization")
    assert is_sensitive_key("auth")
    assert not is_sensitive_key("author")
    assert not is_sensitive_key("")


def test_redact_url_query_and_userinfo() -> None:
    assert redact_url("https://example.com/?q=shoes&page=2") == "https://example.com/?q=shoes&page=2"
    assert redact_url("https://user:pw@example.com/cb?token=abc&x=1") == "https://example.com/cb?token=%3Credacted%3E&x=1"


def test_typed_text_is_never_logged() -> None:
    out = redact_tool_arguments("browser_type", {"text": "hunter2", "selector": "#password"})
    assert out == {"text": "<redacted str len=7>", "selector": "#password"}


def test_long_scripts_are_truncated() -> None:
    out = redact_tool_arguments("browser_evaluate", {"script": "x" * 500})
    assert out["script"].startswith("x" * 200)
    assert out["script"].endswith("<truncated len=500>")


def test_jsonrpc_images_are_omitted() -> None:
    frame = {
        "jsonrpc": "2.0",
        "id": 3,
        "result": {"content": [{"type": "image", "data": "A" * 1000, "mimeType": "image/png"}], "isError": False},
    }

    out = redact_jsonrpc_for_log(frame)

    assert out["result"]["content"][0]["data"] == "<omitted image base64 len=1000>"
    assert frame["result"]["content"][0]["data"] == "A" * 1000
