"""Custom exception hierarchy for hellosearch.

Every failed store operation raises one of these classified errors. They
carry the operation name and the target collection/document so callers can
diagnose a failure without re-running it, and they chain the underlying
transport or decoding exception.
"""

from __future__ import annotations

from typing import Optional


class HelloSearchError(Exception):
    """Base class for all hellosearch exceptions."""

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
        doc_id: Optional[str] = None,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.collection = collection
        self.doc_id = doc_id
        self.status_code = status_code
        self.error_type = error_type
        self.reason = reason

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.collection:
            parts.append(f"collection={self.collection}")
        if self.doc_id is not None:
            parts.append(f"id={self.doc_id}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class ConfigError(HelloSearchError):
    """Raised when configuration loading or validation fails."""


class StoreConnectionError(HelloSearchError):
    """Raised when the store is unreachable or the handshake fails."""


class SchemaError(HelloSearchError):
    """Raised when a collection cannot be declared or dropped."""


class WriteError(HelloSearchError):
    """Raised for index, update and flush failures."""


class ReadError(HelloSearchError):
    """Raised for lookup failures other than a missing document."""


class DecodeError(ReadError):
    """Raised when a stored payload cannot be decoded into a record type."""


class QueryError(HelloSearchError):
    """Raised for malformed or unexecutable searches."""


class NotFoundError(HelloSearchError):
    """Raised when the target collection or document must exist but does not."""
