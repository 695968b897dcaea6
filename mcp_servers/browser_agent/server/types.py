"""
Type definitions for MCP tool responses.
"""

from __future__ import annotations

import json as _json
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ToolContent:
    """Single content item in tool response."""

    type: str  # "text" or "image"
    text: str | None = None
    data: str | None = None  # base64 for images
    mime_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP content format."""
        if self.type == "image":
            return {"type": "image", "data": self.data, "mimeType": self.mime_type}
        return {"type": "text", "text": self.text}


@dataclass(slots=True)
class ToolResult:
    """Result of a tool execution."""

    content: list[ToolContent] = field(default_factory=list)
    is_error: bool = False
    # Raw action result; not part of the MCP wire format.
    data: Any | None = None

    @classmethod
    def text(cls, text: str) -> ToolResult:
        return cls(content=[ToolContent(type="text", text=text or "")])

    @classmethod
    def error(cls, message: str) -> ToolResult:
        return cls(content=[ToolContent(type="text", text=f"Error: {message}")], is_error=True)

    @classmethod
    def json(cls, data: Any) -> ToolResult:
        """Pretty-printed JSON text block (null for actions without a result)."""
        return cls(content=[ToolContent(type="text", text=_json.dumps(data, indent=2, ensure_ascii=False))], data=data)

    @classmethod
    def image_with_caption(cls, data_b64: str, mime_type: str, caption: str, data: Any | None = None) -> ToolResult:
        """Image part followed by a text caption."""
        return cls(
            content=[
                ToolContent(type="image", data=data_b64, mime_type=mime_type),
                ToolContent(type="text", text=caption),
            ],
            data=data,
        )

    def to_content_list(self) -> list[dict[str, Any]]:
        """Convert to MCP content list format."""
        return [c.to_dict() for c in self.content]

    def to_response(self) -> dict[str, Any]:
        return {"content": self.to_content_list(), "isError": self.is_error}


__all__ = ["ToolContent", "ToolResult"]
