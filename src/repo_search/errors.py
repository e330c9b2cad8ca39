"""Typed errors raised by the search engine.

Every error carries a stable ``code`` so callers (UI layers, the CLI) can branch
on the failure kind without string matching.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class SearchErrorCode(str, Enum):
    """Machine-readable failure categories."""

    INVALID_QUERY = "INVALID_QUERY"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    UNSUPPORTED_SEARCH_TYPE = "UNSUPPORTED_SEARCH_TYPE"
    DESERIALIZATION_FAILED = "DESERIALIZATION_FAILED"
    INDEX_CORRUPTION = "INDEX_CORRUPTION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class SearchError(Exception):
    """Base error for the search engine."""

    code: SearchErrorCode = SearchErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class InvalidQueryError(SearchError):
    """Raised when query text is empty, whitespace-only, or too long."""

    code = SearchErrorCode.INVALID_QUERY


class NotInitializedError(SearchError):
    """Raised when an operation runs before ``initialize`` or after ``dispose``."""

    code = SearchErrorCode.NOT_INITIALIZED


class UnsupportedSearchTypeError(SearchError):
    """Raised for search types that are not implemented (semantic, conversational)."""

    code = SearchErrorCode.UNSUPPORTED_SEARCH_TYPE


class DeserializationError(SearchError):
    """Raised when a serialized index blob is corrupt or incompatible."""

    code = SearchErrorCode.DESERIALIZATION_FAILED


class IndexCorruptionError(SearchError):
    """Raised when an internal index invariant is violated."""

    code = SearchErrorCode.INDEX_CORRUPTION
