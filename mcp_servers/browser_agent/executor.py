"""Action executor: the bridge's peer.

Connects to the RpcBridge, decodes each REQUEST into an action, runs it
against a BrowserContext on a worker thread and answers with a RESPONSE
envelope. Reconnects with backoff when the bridge goes away.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import threading
from typing import Any

import websockets

from .actions import execute
from .browser_context import BrowserContext
from .cdp_host import CdpHost
from .config import AgentConfig, configure_logging
from .session_transport import HostCapability

logger = logging.getLogger("browser_agent.executor")


class ActionExecutor:
    def __init__(self, context: BrowserContext, url: str) -> None:
        self.context = context
        self.url = url

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._connected = threading.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ws: Any | None = None
        self._last_error: str | None = None

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Run the peer loop on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._connected.clear()
        t = threading.Thread(target=self.run, name="browser-agent-executor", daemon=True)
        self._thread = t
        t.start()

    def run(self) -> None:
        """Run the peer loop in the calling thread until stop()."""
        asyncio.run(self._run_async())

    def stop(self, *, timeout: float = 2.0) -> None:
        self._stop.set()
        loop = self._loop
        with self._lock:
            ws = self._ws
        if loop is not None and ws is not None:
            with contextlib.suppress(Exception):
                asyncio.run_coroutine_threadsafe(ws.close(), loop).result(timeout=timeout)
        t = self._thread
        if t is not None:
            t.join(timeout=timeout)

    def wait_for_connection(self, *, timeout: float = 5.0) -> bool:
        return bool(self._connected.wait(timeout=max(0.0, float(timeout))))

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "url": self.url,
                "connected": self._ws is not None,
                **({"lastError": self._last_error} if self._last_error else {}),
            }

    # ─────────────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────────────

    def handle_request(self, msg: dict[str, Any]) -> dict[str, Any]:
        """Run one REQUEST envelope and build its RESPONSE (never raises)."""
        req_id = msg.get("id")
        action = str(msg.get("action") or "")
        params = msg.get("params") if isinstance(msg.get("params"), dict) else {}
        logger.info("request id=%s action=%s", req_id, action)
        try:
            data = execute(action, params, self.context)
            payload: dict[str, Any] = {"success": True, "data": data}
        except Exception as exc:  # noqa: BLE001
            logger.warning("action failed id=%s action=%s: %s", req_id, action, exc)
            payload = {"success": False, "error": str(exc) or type(exc).__name__}
        return {"type": "RESPONSE", "id": req_id, "payload": payload}

    async def _serve_request(self, ws, msg: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        response = await asyncio.to_thread(self.handle_request, msg)
        try:
            await ws.send(json.dumps(response, ensure_ascii=False))
        except Exception as exc:  # noqa: BLE001
            logger.warning("response dropped id=%s: %s", msg.get("id"), exc)

    # ─────────────────────────────────────────────────────────────────────────
    # Peer loop
    # ─────────────────────────────────────────────────────────────────────────

    async def _run_async(self) -> None:
        self._loop = asyncio.get_running_loop()
        backoff_s = 0.25
        max_backoff_s = 5.0
        tasks: set[asyncio.Task] = set()

        while not self._stop.is_set():
            try:
                async with websockets.connect(self.url, ping_interval=None, open_timeout=2.0, max_size=64_000_000) as ws:
                    with self._lock:
                        self._ws = ws
                        self._last_error = None
                    self._connected.set()
                    backoff_s = 0.25
                    logger.info("connected to bridge %s", self.url)

                    async for raw in ws:
                        try:
                            msg = json.loads(raw)
                        except ValueError:
                            logger.warning("executor: failed to parse message")
                            continue
                        if not isinstance(msg, dict) or msg.get("type") != "REQUEST":
                            continue
                        task = asyncio.create_task(self._serve_request(ws, msg))
                        tasks.add(task)
                        task.add_done_callback(tasks.discard)
            except Exception as exc:  # noqa: BLE001
                with self._lock:
                    self._last_error = str(exc)
                logger.debug("bridge connection failed: %s", exc)
            finally:
                with self._lock:
                    was_connected = self._ws is not None
                    self._ws = None
                self._connected.clear()
                if was_connected:
                    logger.info("disconnected from bridge")

            if self._stop.is_set():
                break
            await asyncio.sleep(backoff_s)
            backoff_s = min(backoff_s * 1.6, max_backoff_s)


def build_host(config: AgentConfig) -> HostCapability:
    return CdpHost(config.cdp_host, config.cdp_port, command_timeout=config.rpc_timeout)


def main() -> None:
    config = AgentConfig.from_env()
    configure_logging(config)

    host = build_host(config)
    context = BrowserContext(host, nav_timeout=config.nav_timeout)
    executor = ActionExecutor(context, config.bridge_url)
    logger.info("browser-agent executor starting (bridge=%s, cdp=%s:%s)", config.bridge_url, config.cdp_host, config.cdp_port)
    try:
        executor.run()
    except KeyboardInterrupt:
        pass
    finally:
        context.close_all()


if __name__ == "__main__":
    main()
