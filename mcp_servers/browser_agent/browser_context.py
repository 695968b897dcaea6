"""Tab registry: live Page controllers keyed by tab id, plus the active-tab pointer."""

from __future__ import annotations

import logging
import threading
from typing import Any

from .errors import BrowserAgentError
from .page import DEFAULT_NAVIGATION_TIMEOUT, Page
from .session_transport import HostCapability

logger = logging.getLogger("browser_agent.context")


class BrowserContext:
    """Owns every Page for one host.

    Pages are created lazily on first use; switching tabs only moves the
    pointer. Callers must re-read the active page after any blocking call.
    """

    def __init__(self, host: HostCapability, *, nav_timeout: float = DEFAULT_NAVIGATION_TIMEOUT) -> None:
        self.host = host
        self.nav_timeout = float(nav_timeout)
        self._pages: dict[str, Page] = {}
        self._active_tab_id: str | None = None
        self._lock = threading.Lock()
        host.add_listener(self)

    @property
    def active_tab_id(self) -> str | None:
        return self._active_tab_id

    def __contains__(self, tab_id: object) -> bool:
        with self._lock:
            return str(tab_id) in self._pages

    def get_page(self, tab_id: str) -> Page:
        """Return the (initialized) Page for `tab_id`, creating it on first use."""
        tid = str(tab_id)
        with self._lock:
            page = self._pages.get(tid)
            if page is None:
                page = Page(self.host, tid, nav_timeout=self.nav_timeout)
                self._pages[tid] = page
        page.initialize()
        return page

    def get_active_page(self) -> Page:
        tab_id = self._active_tab_id
        if tab_id is None:
            tab_id = self.host.get_active_tab()
            if not tab_id:
                raise BrowserAgentError("No active tab found")
            with self._lock:
                if self._active_tab_id is None:
                    self._active_tab_id = str(tab_id)
                tab_id = self._active_tab_id
        return self.get_page(tab_id)

    def switch_to_tab(self, tab_id: str) -> None:
        tid = str(tab_id)
        known = {str(t.get("id")) for t in self.host.list_tabs() if isinstance(t, dict)}
        if tid not in known:
            raise BrowserAgentError(f"Tab {tid} not found")
        with self._lock:
            self._active_tab_id = tid
        try:
            self.host.activate_tab(tid)
        except Exception as exc:
            # Focus is cosmetic; the pointer is what operations use.
            logger.warning("activate_tab failed tab=%s: %s", tid, exc)

    def remove_closed_tab(self, tab_id: str) -> None:
        tid = str(tab_id)
        with self._lock:
            page = self._pages.pop(tid, None)
            if self._active_tab_id == tid:
                self._active_tab_id = None
        if page is None:
            return
        try:
            page.close()
        except Exception as exc:
            logger.info("detach of closed tab ignored tab=%s: %s", tid, exc)

    # HostListener

    def on_host_event(self, target_id: str, method: str, params: dict[str, Any]) -> None:
        pass

    def on_host_detach(self, target_id: str, reason: str) -> None:
        """Forget a tab whose session dropped because the tab itself went away.

        A detach with the tab still listed (DevTools took the target, socket
        hiccup) keeps the entry so the next operation re-attaches.
        """
        tid = str(target_id)
        with self._lock:
            tracked = tid in self._pages or tid == self._active_tab_id
        if not tracked:
            return
        try:
            live = {str(t.get("id")) for t in self.host.list_tabs() if isinstance(t, dict)}
        except Exception as exc:
            logger.info("tab list unavailable after detach tab=%s: %s", tid, exc)
            return
        if tid in live:
            return
        logger.info("tab closed tab=%s reason=%s", tid, reason)
        self.remove_closed_tab(tid)

    def get_all_tabs_info(self) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for tab in self.host.list_tabs():
            if not isinstance(tab, dict):
                continue
            out.append(
                {
                    "id": tab.get("id"),
                    "url": tab.get("url", ""),
                    "title": tab.get("title", ""),
                    "active": bool(tab.get("active", False)),
                }
            )
        return out

    def close_all(self) -> None:
        self.host.remove_listener(self)
        with self._lock:
            pages = list(self._pages.items())
            self._pages.clear()
            self._active_tab_id = None
        for tid, page in pages:
            try:
                page.close()
            except Exception as exc:
                logger.info("close ignored tab=%s: %s", tid, exc)


__all__ = ["BrowserContext"]
