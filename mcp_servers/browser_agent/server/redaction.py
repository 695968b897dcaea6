"""Log-safe views of tool arguments and JSON-RPC frames.

Nothing here changes what is sent to the browser; these helpers only shape
what ends up in the stderr log. Typed text, credential-looking keys and URL
secrets are masked, long strings are cut and screenshot payloads dropped.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

MAX_LOGGED_STRING = 200
MASK = "<redacted>"

_SECRET_MARKERS = (
    "token",
    "secret",
    "password",
    "passwd",
    "pwd",
    "authorization",
    "cookie",
    "session",
    "jwt",
    "bearer",
    "api-key",
    "api_key",
    "apikey",
)
# Whole-key matches only, so "author" or "passage" stay readable.
_SECRET_KEYS = frozenset({"auth", "pass"})

# Arguments masked regardless of key name: whatever is typed may be a credential.
_ALWAYS_MASKED = {"browser_type": frozenset({"text"})}


def is_sensitive_key(key: str) -> bool:
    name = (key or "").strip().lower()
    return bool(name) and (name in _SECRET_KEYS or any(m in name for m in _SECRET_MARKERS))


def _mask_query(raw: str) -> str | None:
    """Masked query string, or None when no pair needed masking."""
    hit = False
    pairs: list[tuple[str, str]] = []
    for name, value in parse_qsl(raw, keep_blank_values=True):
        if value and is_sensitive_key(name):
            value = MASK
            hit = True
        pairs.append((name, value))
    return urlencode(pairs, doseq=True) if hit else None


def redact_url(url: str) -> str:
    """Strip userinfo and mask secret-looking query/fragment parameters.

    Ordinary URLs come back untouched (same string object).
    """
    if not isinstance(url, str) or not url:
        return url
    try:
        scheme, netloc, path, query, fragment = urlsplit(url)
    except ValueError:
        return url

    dirty = "@" in netloc
    netloc = netloc.rpartition("@")[2]
    if query:
        masked = _mask_query(query)
        if masked is not None:
            query, dirty = masked, True
    # OAuth implicit flows put tokens in the fragment.
    if "=" in fragment:
        masked = _mask_query(fragment)
        if masked is not None:
            fragment, dirty = masked, True
    return urlunsplit((scheme, netloc, path, query, fragment)) if dirty else url


def _summary(value: Any) -> str:
    if isinstance(value, str):
        return f"<redacted str len={len(value)}>"
    if isinstance(value, (list, tuple)):
        return f"<redacted list len={len(value)}>"
    if isinstance(value, dict):
        return f"<redacted dict keys={len(value)}>"
    return MASK


def _clip(text: str) -> str:
    if len(text) > MAX_LOGGED_STRING:
        return f"{text[:MAX_LOGGED_STRING]}… <truncated len={len(text)}>"
    return text


def _scrub(value: Any, masked: frozenset[str], key: str = "") -> Any:
    if isinstance(value, dict):
        return {k: _scrub(v, masked, str(k).lower()) for k, v in value.items()}
    if isinstance(value, list):
        return [_scrub(v, masked, key) for v in value]
    if key == "url" and isinstance(value, str):
        return redact_url(value)
    if key in masked or is_sensitive_key(key):
        return _summary(value)
    return _clip(value) if isinstance(value, str) else value


def redact_tool_arguments(tool: str, args: dict[str, Any]) -> dict[str, Any]:
    return _scrub(args if isinstance(args, dict) else {}, _ALWAYS_MASKED.get(tool, frozenset()))


def redact_jsonrpc_for_log(payload: dict[str, Any]) -> dict[str, Any]:
    """Copy of a frame fit for a debug log: tool arguments scrubbed, images elided."""
    frame = dict(payload) if isinstance(payload, dict) else {}

    params = frame.get("params")
    if frame.get("method") == "tools/call" and isinstance(params, dict):
        tool, args = params.get("name"), params.get("arguments")
        if isinstance(tool, str) and isinstance(args, dict):
            frame["params"] = {**params, "arguments": redact_tool_arguments(tool, args)}

    result = frame.get("result")
    if isinstance(result, dict) and isinstance(result.get("content"), list):
        parts = []
        for part in result["content"]:
            if isinstance(part, dict) and part.get("type") == "image" and isinstance(part.get("data"), str):
                part = {**part, "data": f"<omitted image base64 len={len(part['data'])}>"}
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                part = {**part, "text": _clip(part["text"])}
            parts.append(part)
        frame["result"] = {**result, "content": parts}
    return frame


__all__ = ["is_sensitive_key", "redact_jsonrpc_for_log", "redact_tool_arguments", "redact_url"]
