"""Error taxonomy shared by the bridge, the executor and the page layer.

Session/Page errors propagate unchanged up to the tool dispatcher, which is the
only place that turns them into an error-flagged MCP response.
"""

from __future__ import annotations

from typing import Any


class BrowserAgentError(Exception):
    """Base class for every error raised by browser-agent."""


# Host capability contract (raised by HostCapability implementations)


class HostError(BrowserAgentError):
    """The host refused or failed an attach/detach/list request."""


class HostCommandError(HostError):
    """The host executed a protocol command and it reported an error."""

    def __init__(self, message: str, *, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


class HostDetachedError(HostError):
    """The debug session for the target is gone (already detached / tab closed)."""


# Session / page layer


class AttachmentError(BrowserAgentError):
    """A command was sent while the session is not attached, or attach was denied."""


class ProtocolError(BrowserAgentError):
    """A protocol command failed on the host side."""

    def __init__(self, method: str, message: str, *, code: int | None = None) -> None:
        self.method = method
        self.code = code
        self.message = message
        prefix = f"{method} failed"
        if code is not None:
            prefix += f" ({code})"
        super().__init__(f"{prefix}: {message}")


class EvaluationError(BrowserAgentError):
    """Script evaluation threw inside the page."""


class ElementNotFoundError(BrowserAgentError):
    def __init__(self, selector: str) -> None:
        self.selector = selector
        super().__init__(f"Element not found: {selector}")


class NavigationTimeoutError(BrowserAgentError, TimeoutError):
    def __init__(self, message: str = "Navigation timeout") -> None:
        super().__init__(message)


# Bridge layer


class RpcTimeoutError(BrowserAgentError, TimeoutError):
    def __init__(self, action: str, timeout: float) -> None:
        self.action = action
        self.timeout = timeout
        super().__init__(f"Request timeout: {action}")


class PeerConnectionError(BrowserAgentError, ConnectionError):
    """No action executor is connected to the bridge."""


class RemoteActionError(BrowserAgentError):
    """The executor replied with success=false; the message is the peer's error text."""

    def __init__(self, message: str, *, action: str | None = None) -> None:
        self.action = action
        super().__init__(message)


class BridgeStartError(BrowserAgentError):
    """The bridge could not bind its listening socket (fatal at startup)."""


# Action decoding


class UnknownActionError(BrowserAgentError):
    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Unknown action: {action}")


class InvalidParamsError(BrowserAgentError):
    """Action parameters are missing or have the wrong type."""


class OverlayError(BrowserAgentError):
    """Overlay notification failed; never affects the primary action."""


__all__ = [
    "AttachmentError",
    "BridgeStartError",
    "BrowserAgentError",
    "ElementNotFoundError",
    "EvaluationError",
    "HostCommandError",
    "HostDetachedError",
    "HostError",
    "InvalidParamsError",
    "NavigationTimeoutError",
    "OverlayError",
    "PeerConnectionError",
    "ProtocolError",
    "RemoteActionError",
    "RpcTimeoutError",
    "UnknownActionError",
]
