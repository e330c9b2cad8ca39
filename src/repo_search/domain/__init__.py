"""Domain layer - repository records and search value objects.

This layer contains:
- Entities: the ``Repository`` record identified by ``id``
- Value objects: requests, filters, results, suggestions and traces

No dependencies on the index or on observability; everything here is plain
Pydantic.
"""

from repo_search.domain.model import SEARCHABLE_FIELDS, Owner, Repository
from repo_search.domain.search import (
    DateRange,
    ExplanationStep,
    FieldStatistics,
    HistoryEntry,
    IndexStats,
    RelevanceFactor,
    ResultMetadata,
    SearchExplanation,
    SearchFilters,
    SearchMatch,
    SearchOptions,
    SearchRequest,
    SearchResult,
    SearchStatistics,
    SearchType,
    SortField,
    SortOrder,
    Suggestion,
    TextHighlight,
)


__all__ = [
    "SEARCHABLE_FIELDS",
    "DateRange",
    "ExplanationStep",
    "FieldStatistics",
    "HistoryEntry",
    "IndexStats",
    "Owner",
    "RelevanceFactor",
    "Repository",
    "ResultMetadata",
    "SearchExplanation",
    "SearchFilters",
    "SearchMatch",
    "SearchOptions",
    "SearchRequest",
    "SearchResult",
    "SearchStatistics",
    "SearchType",
    "SortField",
    "SortOrder",
    "Suggestion",
    "TextHighlight",
]
