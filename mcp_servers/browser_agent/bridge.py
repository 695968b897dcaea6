from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

import websockets

from .config import DEFAULT_BRIDGE_HOST, DEFAULT_BRIDGE_PORT, DEFAULT_RPC_TIMEOUT
from .errors import BridgeStartError, PeerConnectionError, RemoteActionError, RpcTimeoutError

logger = logging.getLogger("browser_agent.bridge")

REQUEST = "REQUEST"
RESPONSE = "RESPONSE"


class RpcBridge:
    """Loopback WebSocket server that forwards actions to the action executor.

    Design:
    - Sync API for the tool layer (`call` blocks until reply or timeout).
    - Async server internally (runs in a dedicated daemon thread).
    - One peer slot: a new connection replaces the previous one. Calls already
      sent on the replaced connection are not cancelled; they resolve if a reply
      still arrives, otherwise they time out.
    - Every pending entry is removed exactly once, by whichever of reply or
      timeout pops it first under the lock.
    """

    def __init__(
        self,
        *,
        host: str = DEFAULT_BRIDGE_HOST,
        port: int = DEFAULT_BRIDGE_PORT,
        timeout: float = DEFAULT_RPC_TIMEOUT,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.timeout = float(timeout)

        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._stop = threading.Event()
        self._connected = threading.Event()

        self._server: Any | None = None
        self._ws: Any | None = None
        self._bind_error: str | None = None

        self._ids = itertools.count(1)
        self._pending: dict[str, Future] = {}

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def start(self, *, wait_timeout: float = 5.0) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop.clear()
        self._ready.clear()
        with self._lock:
            self._bind_error = None

        t = threading.Thread(target=self._run_thread, name="browser-agent-bridge", daemon=True)
        self._thread = t
        t.start()

        if not self._ready.wait(timeout=max(0.05, float(wait_timeout))):
            raise BridgeStartError(f"Bridge failed to start on {self.host}:{self.port}")
        with self._lock:
            bind_error = self._bind_error
        if bind_error:
            raise BridgeStartError(f"Bridge bind failed on {self.host}:{self.port}: {bind_error}")
        logger.info("bridge listening on ws://%s:%s", self.host, self.port)

    def stop(self, *, timeout: float = 2.0) -> None:
        self._stop.set()
        t = self._thread
        if t is not None:
            t.join(timeout=timeout)

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "listening": self._server is not None,
                "host": self.host,
                "port": self.port,
                "connected": self._ws is not None,
                "pending": len(self._pending),
                **({"bindError": self._bind_error} if self._bind_error else {}),
            }

    def is_connected(self) -> bool:
        with self._lock:
            return self._ws is not None

    def wait_for_connection(self, *, timeout: float = 5.0) -> bool:
        """Block until a peer is connected or timeout."""
        return bool(self._connected.wait(timeout=max(0.0, float(timeout))))

    def pending_ids(self) -> list[str]:
        with self._lock:
            return list(self._pending)

    # ─────────────────────────────────────────────────────────────────────────
    # RPC
    # ─────────────────────────────────────────────────────────────────────────

    def call(self, action: str, params: dict[str, Any] | None = None, timeout: float | None = None) -> Any:
        limit = self.timeout if timeout is None else max(0.05, float(timeout))

        with self._lock:
            ws = self._ws
            loop = self._loop
            if ws is None or loop is None:
                raise PeerConnectionError("Browser executor not connected. Start browser-agent-executor first.")
            req_id = f"req_{next(self._ids)}"
            fut: Future = Future()
            self._pending[req_id] = fut

        deadline = time.monotonic() + limit
        msg = {"type": REQUEST, "id": req_id, "action": action, "params": params or {}}
        try:
            asyncio.run_coroutine_threadsafe(self._ws_send_json(ws, msg), loop).result(timeout=limit)
        except Exception as exc:  # noqa: BLE001
            with self._lock:
                self._pending.pop(req_id, None)
            raise PeerConnectionError(f"Bridge send failed: {exc}") from exc

        try:
            # Send time counts against the same budget.
            return fut.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError:
            with self._lock:
                owned = self._pending.pop(req_id, None) is not None
            if owned:
                logger.warning("request timed out id=%s action=%s after %.1fs", req_id, action, limit)
                raise RpcTimeoutError(action, limit) from None
            # The reply claimed the entry between the wait expiring and the pop.
            return fut.result(timeout=1.0)

    def _on_message(self, msg: Any) -> None:
        if not isinstance(msg, dict) or msg.get("type") != RESPONSE:
            return
        req_id = msg.get("id")
        if not isinstance(req_id, str):
            return
        with self._lock:
            fut = self._pending.pop(req_id, None)
        if fut is None:
            logger.debug("dropping response for unknown id=%s", req_id)
            return

        payload = msg.get("payload") if isinstance(msg.get("payload"), dict) else {}
        if payload.get("success"):
            fut.set_result(payload.get("data"))
            return
        fut.set_exception(RemoteActionError(str(payload.get("error") or "Unknown error")))

    # ─────────────────────────────────────────────────────────────────────────
    # Server loop
    # ─────────────────────────────────────────────────────────────────────────

    def _run_thread(self) -> None:
        asyncio.run(self._run_async())

    async def _run_async(self) -> None:
        self._loop = asyncio.get_running_loop()
        try:
            server = await websockets.serve(
                self._handler,
                self.host,
                self.port,
                max_size=64_000_000,
                ping_interval=None,
            )
        except OSError as exc:
            with self._lock:
                self._bind_error = str(exc)
            self._ready.set()
            return

        with self._lock:
            self._server = server
            if self.port == 0:
                with contextlib.suppress(Exception):
                    self.port = int(next(iter(server.sockets)).getsockname()[1])
        self._ready.set()

        try:
            while not self._stop.is_set():
                await asyncio.sleep(0.1)
        finally:
            await self._shutdown_async()

    async def _shutdown_async(self) -> None:
        with self._lock:
            srv = self._server
            self._server = None
        if srv is not None:
            srv.close()
            with contextlib.suppress(Exception):
                await srv.wait_closed()
        with self._lock:
            self._ws = None
            self._connected.clear()

    async def _handler(self, ws) -> None:  # type: ignore[no-untyped-def]
        with self._lock:
            replaced = self._ws is not None
            self._ws = ws
        self._connected.set()
        if replaced:
            logger.info("executor connected, replacing previous connection")
        else:
            logger.info("executor connected")

        try:
            async for raw_msg in ws:
                try:
                    msg = json.loads(raw_msg)
                except ValueError:
                    logger.warning("bridge: failed to parse message")
                    continue
                self._on_message(msg)
        except Exception as exc:  # noqa: BLE001
            logger.debug("executor connection error: %s", exc)
        finally:
            with self._lock:
                current = self._ws is ws
                if current:
                    self._ws = None
                    self._connected.clear()
            if current:
                logger.info("executor disconnected")

    async def _ws_send_json(self, ws, payload: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        await ws.send(json.dumps(payload, ensure_ascii=False))


__all__ = ["REQUEST", "RESPONSE", "RpcBridge"]
