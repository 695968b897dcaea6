"""HostCapability over Chrome's remote-debugging endpoint.

Tabs are listed/activated over HTTP (`/json/list`, `/json/activate/<id>`);
each attached tab gets its own websocket-client connection with a reader
thread that routes command responses by id and fans events out to
listeners.
"""

from __future__ import annotations

import itertools
import json
import logging
import socket
import threading
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import suppress
from typing import Any

import websocket

from .errors import HostCommandError, HostDetachedError, HostError
from .http_client import HttpClientError, http_get_json, http_get_text
from .session_transport import HostListener

logger = logging.getLogger("browser_agent.cdp_host")

DEFAULT_COMMAND_TIMEOUT = 30.0


class _TargetConnection:
    """One CDP websocket for one target, read by a daemon thread."""

    def __init__(
        self,
        target_id: str,
        ws_url: str,
        *,
        on_event: Callable[[str, str, dict[str, Any]], None],
        on_close: Callable[[_TargetConnection, str], None],
        connect_timeout: float = 5.0,
    ) -> None:
        self.target_id = target_id
        self.ws_url = ws_url
        self._on_event = on_event
        self._on_close = on_close
        self.ws = websocket.create_connection(ws_url, timeout=connect_timeout)
        self.ws.settimeout(None)
        self._ids = itertools.count(1)
        self._pending: dict[int, Future] = {}
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._closing = False
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=f"cdp-reader-{target_id[:8]}", daemon=True)
        self._thread.start()

    def send(self, method: str, params: dict[str, Any] | None, timeout: float) -> dict[str, Any]:
        fut: Future = Future()
        with self._lock:
            if self._closed:
                raise HostDetachedError(f"Target {self.target_id} is detached")
            msg_id = next(self._ids)
            self._pending[msg_id] = fut

        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params
        try:
            with self._send_lock:
                self.ws.send(json.dumps(msg))
        except Exception as exc:
            with self._lock:
                self._pending.pop(msg_id, None)
            raise HostDetachedError(f"Target {self.target_id} send failed: {exc}") from exc

        try:
            reply = fut.result(timeout=timeout)
        except FutureTimeoutError as exc:
            with self._lock:
                self._pending.pop(msg_id, None)
            raise HostCommandError(f"{method} timed out after {timeout:.1f}s") from exc

        error = reply.get("error")
        if isinstance(error, dict):
            raise HostCommandError(
                str(error.get("message") or "Unknown error"),
                code=error.get("code") if isinstance(error.get("code"), int) else None,
                data=error.get("data"),
            )
        result = reply.get("result")
        return result if isinstance(result, dict) else {}

    def close(self) -> None:
        with self._lock:
            self._closing = True
        # ws.close() can block on internal locks while the reader sits in recv();
        # shutting the raw socket down reliably wakes it.
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(Exception):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(Exception):
                sock.close()

    def _run(self) -> None:
        reason = "connection closed"
        try:
            while True:
                raw = self.ws.recv()
                if not raw:
                    break
                try:
                    data = json.loads(raw)
                except ValueError:
                    continue
                if not isinstance(data, dict):
                    continue
                if "id" in data:
                    with self._lock:
                        fut = self._pending.pop(data.get("id"), None)
                    if fut is not None and not fut.done():
                        fut.set_result(data)
                    continue
                method = data.get("method")
                if not isinstance(method, str):
                    continue
                params = data.get("params") if isinstance(data.get("params"), dict) else {}
                if method == "Inspector.detached":
                    reason = str(params.get("reason") or "inspector detached")
                    break
                self._on_event(self.target_id, method, params)
        except Exception as exc:
            reason = str(exc) or reason
        finally:
            self._finish(reason)

    def _finish(self, reason: str) -> None:
        with self._lock:
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
            forced = not self._closing
        for fut in pending:
            if not fut.done():
                fut.set_exception(HostDetachedError(f"Target {self.target_id} detached: {reason}"))
        with suppress(Exception):
            self.ws.close()
        if forced:
            self._on_close(self, reason)


class CdpHost:
    """Remote-debugging host for a browser started with --remote-debugging-port."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 9222,
        *,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        connect_timeout: float = 5.0,
    ) -> None:
        self.base_url = f"http://{host}:{int(port)}"
        self.command_timeout = float(command_timeout)
        self.connect_timeout = float(connect_timeout)
        self._connections: dict[str, _TargetConnection] = {}
        self._listeners: list[HostListener] = []
        self._active_tab: str | None = None
        self._lock = threading.Lock()

    # ─────────────────────────────────────────────────────────────────────────
    # Tabs
    # ─────────────────────────────────────────────────────────────────────────

    def _targets(self) -> list[dict[str, Any]]:
        try:
            data = http_get_json(f"{self.base_url}/json/list", timeout=self.connect_timeout)
        except HttpClientError as exc:
            raise HostError(f"Remote debugging endpoint unavailable at {self.base_url}: {exc}") from exc
        if not isinstance(data, list):
            return []
        return [t for t in data if isinstance(t, dict) and t.get("type") == "page" and t.get("id")]

    def list_tabs(self) -> list[dict[str, Any]]:
        targets = self._targets()
        active = self._resolve_active(targets)
        return [
            {
                "id": str(t["id"]),
                "url": str(t.get("url") or ""),
                "title": str(t.get("title") or ""),
                "active": str(t["id"]) == active,
            }
            for t in targets
        ]

    def _resolve_active(self, targets: list[dict[str, Any]]) -> str | None:
        ids = [str(t["id"]) for t in targets]
        if self._active_tab in ids:
            return self._active_tab
        # /json/list orders pages by most recent focus.
        return ids[0] if ids else None

    def get_active_tab(self) -> str | None:
        return self._resolve_active(self._targets())

    def activate_tab(self, target_id: str) -> None:
        try:
            http_get_text(f"{self.base_url}/json/activate/{target_id}", timeout=self.connect_timeout)
        except HttpClientError as exc:
            raise HostError(f"Failed to activate tab {target_id}: {exc}") from exc
        self._active_tab = str(target_id)

    # ─────────────────────────────────────────────────────────────────────────
    # Sessions
    # ─────────────────────────────────────────────────────────────────────────

    def attach(self, target_id: str) -> None:
        tid = str(target_id)
        with self._lock:
            if tid in self._connections:
                return
        target = next((t for t in self._targets() if str(t["id"]) == tid), None)
        if target is None:
            raise HostError(f"Tab {tid} not found")
        ws_url = target.get("webSocketDebuggerUrl")
        if not ws_url:
            # Chrome hides the URL while another client (e.g. DevTools) holds the target.
            raise HostError(f"Tab {tid} is already being debugged")
        try:
            conn = _TargetConnection(
                tid,
                str(ws_url),
                on_event=self._emit_event,
                on_close=self._emit_detach,
                connect_timeout=self.connect_timeout,
            )
        except Exception as exc:
            raise HostError(f"Failed to connect to tab {tid}: {exc}") from exc
        with self._lock:
            self._connections[tid] = conn
        logger.debug("cdp attached target=%s", tid)

    def detach(self, target_id: str) -> None:
        with self._lock:
            conn = self._connections.pop(str(target_id), None)
        if conn is None:
            raise HostDetachedError(f"Tab {target_id} is not attached")
        conn.close()

    def send_command(self, target_id: str, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        with self._lock:
            conn = self._connections.get(str(target_id))
        if conn is None:
            raise HostDetachedError(f"Tab {target_id} is not attached")
        return conn.send(method, params, self.command_timeout)

    def close(self) -> None:
        with self._lock:
            conns = list(self._connections.values())
            self._connections.clear()
        for conn in conns:
            conn.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Listeners
    # ─────────────────────────────────────────────────────────────────────────

    def add_listener(self, listener: HostListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: HostListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _emit_event(self, target_id: str, method: str, params: dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener.on_host_event(target_id, method, params)
            except Exception:
                logger.exception("host listener failed target=%s method=%s", target_id, method)

    def _emit_detach(self, conn: _TargetConnection, reason: str) -> None:
        target_id = conn.target_id
        with self._lock:
            if self._connections.get(target_id) is conn:
                del self._connections[target_id]
            listeners = list(self._listeners)
        logger.info("cdp target detached target=%s reason=%s", target_id, reason)
        for listener in listeners:
            try:
                listener.on_host_detach(target_id, reason)
            except Exception:
                logger.exception("host detach listener failed target=%s", target_id)


__all__ = ["CdpHost"]
