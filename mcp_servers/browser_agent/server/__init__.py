"""MCP-facing layer: tool catalogue, dispatcher and protocol contract.

Keep this package import light: the executor process never needs it.
"""
