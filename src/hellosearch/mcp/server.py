"""hellosearch MCP server entrypoint using FastMCP.

Exposes the document store client as tools.
Run with:
  - hellosearch-mcp
  - or: python -m hellosearch.mcp.server (ensure PYTHONPATH includes ./src)
"""
from __future__ import annotations

import logging
from typing import Optional

from fastmcp import FastMCP

from hellosearch.client import ConnectionState, DocumentStoreClient, connect
from hellosearch.config import Settings, load_settings
from hellosearch.mcp.tools import register_store_tools

logger = logging.getLogger("hellosearch.mcp")


class AppState:
    """Application state shared by MCP tools."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.client: Optional[DocumentStoreClient] = None

    def get_client(self) -> DocumentStoreClient:
        """Return the connected client, connecting on first use or after a drop."""
        if self.client is None or self.client.state is not ConnectionState.CONNECTED:
            logger.info("Connecting to store hosts: %s", self.settings.store.hosts)
            self.client = connect(self.settings.store)
        return self.client

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None


# Global state and server instance
_state: Optional[AppState] = None
mcp = FastMCP("hellosearch MCP Server")


# ----- Tools -----

@mcp.tool
def health() -> str:
    """Simple health check tool."""
    return "ok"


# ----- Entrypoint -----

def main() -> None:
    """Initialize state and run the MCP server."""
    global _state
    settings = load_settings()
    logging.basicConfig(level=settings.app.log_level.upper())
    _state = AppState(settings)
    register_store_tools(mcp, get_state=lambda: _state)
    # Choose transport based on configuration: stdio (default), http, or sse
    transport = settings.app.transport
    try:
        if transport in ("http", "sse"):
            mcp.run(transport=transport, host=settings.app.host, port=settings.app.port)
        else:
            mcp.run()
    finally:
        _state.close()


if __name__ == "__main__":  # pragma: no cover
    main()
