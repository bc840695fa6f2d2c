"""Document store tools for FastMCP.

Thin wrappers over DocumentStoreClient; results are returned as plain dicts.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Callable, Dict, Optional

from fastmcp import FastMCP

from hellosearch.client import DocumentStoreClient
from hellosearch.query import match_all_query, term_query


def register_store_tools(mcp: FastMCP, get_state: Callable[[], Any]) -> None:
    """Register document store tools on the given FastMCP instance.

    The state object must provide ``get_client()`` returning a connected
    DocumentStoreClient.
    """

    def _client() -> DocumentStoreClient:
        state = get_state()
        if state is None:
            raise RuntimeError("Server state is not initialized.")
        return state.get_client()

    @mcp.tool
    def store_ping() -> Dict[str, Any]:
        """Check the store is reachable and report its version."""
        return asdict(_client().ping())

    @mcp.tool
    def store_collection_exists(collection: str) -> bool:
        """Return whether a collection (index) exists."""
        return _client().collection_exists(collection)

    @mcp.tool
    def store_get_document(collection: str, schema_name: str, doc_id: str) -> Dict[str, Any]:
        """Fetch one document by id.

        A missing document is reported with found=false rather than an error.
        """
        return asdict(_client().get_document(collection, schema_name, doc_id))

    @mcp.tool
    def store_put_document(
        collection: str, schema_name: str, doc_id: str, document: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Insert or fully replace a document and return its new version."""
        return asdict(_client().put_document(collection, schema_name, doc_id, document))

    @mcp.tool
    def store_flush(collection: str) -> Dict[str, Any]:
        """Persist pending writes and make them visible to search."""
        return asdict(_client().flush(collection))

    @mcp.tool
    def store_search(
        collection: str,
        field: Optional[str] = None,
        value: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Dict[str, Any]:
        """Search a collection.

        Parameters
        ----------
        collection: str
            Collection (index) name.
        field, value: str | None
            When both are given, run a term query `field == value`; otherwise
            match every document.
        offset, limit: int
            Zero-based result window. `total_hits` counts all matches.
        """
        query = term_query(field, value) if field and value is not None else match_all_query()
        return asdict(_client().search(collection, query, offset=offset, limit=limit))

    @mcp.tool
    def store_update_document(
        collection: str,
        schema_name: str,
        doc_id: str,
        script: str,
        params: Optional[Dict[str, Any]] = None,
        upsert: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Apply a server-side script to a document, inserting `upsert` if it is missing."""
        return asdict(
            _client().update_document(collection, schema_name, doc_id, script, params=params, upsert=upsert)
        )
