"""Tool catalogue: static definitions and the tool → action lookup."""

from __future__ import annotations

from typing import Any


def _tool(name: str, description: str, properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return {"name": name, "description": description, "inputSchema": schema}


TOOL_DEFINITIONS: list[dict[str, Any]] = [
    _tool(
        "browser_navigate",
        "Navigate to a URL in the browser and wait for the page to load",
        {"url": {"type": "string", "description": "The URL to navigate to"}},
        ["url"],
    ),
    _tool(
        "browser_click",
        "Click on an element or at specific coordinates",
        {
            "selector": {"type": "string", "description": "CSS selector of the element to click"},
            "x": {"type": "number", "description": "X coordinate to click at"},
            "y": {"type": "number", "description": "Y coordinate to click at"},
            "button": {"type": "string", "enum": ["left", "right", "middle"], "default": "left"},
            "clickCount": {"type": "integer", "minimum": 1, "default": 1},
        },
    ),
    _tool(
        "browser_type",
        "Type text into an element or the currently focused element",
        {
            "text": {"type": "string", "description": "The text to type"},
            "selector": {"type": "string", "description": "CSS selector of the element to type into (optional)"},
            "clearFirst": {"type": "boolean", "description": "Clear the element before typing"},
            "delay": {"type": "number", "description": "Delay between characters in milliseconds (0 inserts at once)"},
        },
        ["text"],
    ),
    _tool(
        "browser_scroll",
        "Scroll the page in a direction, to an element, or to absolute coordinates",
        {
            "direction": {"type": "string", "enum": ["up", "down", "left", "right"], "description": "Direction to scroll"},
            "distance": {"type": "number", "description": "Distance to scroll in pixels (default 500)"},
            "selector": {"type": "string", "description": "CSS selector of element to scroll to"},
            "x": {"type": "number", "description": "Absolute X scroll position"},
            "y": {"type": "number", "description": "Absolute Y scroll position"},
        },
    ),
    _tool(
        "browser_screenshot",
        "Take a screenshot of the current page",
        {
            "fullPage": {"type": "boolean", "description": "Capture the full page or just the viewport"},
            "format": {"type": "string", "enum": ["png", "jpeg", "webp"], "description": "Image format"},
            "quality": {"type": "integer", "minimum": 0, "maximum": 100, "description": "Compression quality (jpeg/webp)"},
        },
    ),
    _tool(
        "browser_extract",
        "Extract text and HTML content from an element",
        {"selector": {"type": "string", "description": "CSS selector of the element to extract"}},
        ["selector"],
    ),
    _tool(
        "browser_evaluate",
        "Execute JavaScript code in the page context",
        {"script": {"type": "string", "description": "JavaScript code to execute"}},
        ["script"],
    ),
    _tool("browser_get_page_info", "Get information about the current page (URL, title)"),
    _tool("browser_get_tabs", "Get list of all open browser tabs"),
    _tool(
        "browser_switch_tab",
        "Switch to a specific browser tab",
        {"tabId": {"type": ["string", "number"], "description": "The ID of the tab to switch to"}},
        ["tabId"],
    ),
    _tool(
        "browser_press_key",
        "Press a keyboard key",
        {"key": {"type": "string", "description": 'Key to press (e.g., "Enter", "Escape", "Tab")'}},
        ["key"],
    ),
    _tool(
        "browser_select_option",
        "Select an option from a dropdown/select element (matched by value, then text, then index)",
        {
            "selector": {"type": "string", "description": "CSS selector of the select element"},
            "value": {"type": "string", "description": "Value of the option to select"},
            "text": {"type": "string", "description": "Text content of the option to select"},
            "index": {"type": "integer", "description": "Index of the option to select"},
        },
        ["selector"],
    ),
    _tool("browser_go_back", "Navigate back in browser history"),
    _tool("browser_go_forward", "Navigate forward in browser history"),
    _tool("browser_reload", "Reload the current page"),
    _tool(
        "browser_get_console_logs",
        "Return console messages and uncaught errors collected since the last call (clears the buffer)",
    ),
]

TOOL_ACTIONS: dict[str, str] = {
    "browser_navigate": "navigate",
    "browser_click": "click",
    "browser_type": "type",
    "browser_scroll": "scroll",
    "browser_screenshot": "screenshot",
    "browser_extract": "extract",
    "browser_evaluate": "evaluate",
    "browser_get_page_info": "get_page_info",
    "browser_get_tabs": "get_tabs",
    "browser_switch_tab": "switch_tab",
    "browser_press_key": "press_key",
    "browser_select_option": "select_option",
    "browser_go_back": "go_back",
    "browser_go_forward": "go_forward",
    "browser_reload": "reload",
    "browser_get_console_logs": "get_console_logs",
}

SCREENSHOT_ACTION = "screenshot"


def action_for_tool(name: str) -> str | None:
    return TOOL_ACTIONS.get(name)


__all__ = ["SCREENSHOT_ACTION", "TOOL_ACTIONS", "TOOL_DEFINITIONS", "action_for_tool"]
