"""MCP surface for the cross-reference index."""

from .server import TOOLS, create_server, handle_tool_call, main, serve

__all__ = ["TOOLS", "create_server", "handle_tool_call", "main", "serve"]
