from __future__ import annotations

import json
import urllib.parse
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen


class HttpClientError(Exception):
    pass


def _build_request(url: str) -> Request:
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise HttpClientError("Only http/https are supported")
    return Request(url, headers={"User-Agent": "browser-agent/1.0"})


def http_get_text(url: str, timeout: float = 2.0) -> str:
    req = _build_request(url)
    try:
        with urlopen(req, timeout=timeout) as resp:
            return resp.read().decode(errors="replace")
    except (TimeoutError, URLError, OSError) as exc:
        raise HttpClientError(str(exc)) from exc


def http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch JSON from URL."""
    body = http_get_text(url, timeout=timeout)
    try:
        return json.loads(body)
    except ValueError as exc:
        raise HttpClientError(f"Invalid JSON from {url}: {exc}") from exc


__all__ = ["HttpClientError", "http_get_json", "http_get_text"]
