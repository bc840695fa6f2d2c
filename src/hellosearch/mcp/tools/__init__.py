"""Tool registration modules for the hellosearch MCP server."""

from .store import register_store_tools

__all__ = ["register_store_tools"]
