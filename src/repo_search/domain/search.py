"""Domain models for search requests, results and traces.

Value objects are immutable (frozen=True) so a result handed to a caller can
not drift from what the engine ranked. Scores and confidence are computed per
query and never cached across queries.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from repo_search.domain.model import Repository


class SearchType(str, Enum):
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    CONVERSATIONAL = "conversational"
    HYBRID = "hybrid"


class SortField(str, Enum):
    RELEVANCE = "relevance"
    STARS = "stars"
    UPDATED = "updated"
    CREATED = "created"
    NAME = "name"
    FORKS = "forks"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class DateRange(BaseModel):
    """Inclusive timestamp window over one of the repository dates."""

    model_config = ConfigDict(frozen=True)

    field: Literal["created", "updated", "pushed"] = "updated"
    start: datetime | None = None
    end: datetime | None = None


class SearchFilters(BaseModel):
    """Structured filters applied after clause matching.

    ``None`` means "do not filter". The engine applies exactly what it is
    given; UI-level defaults (hide archived, show forks) belong to the caller.
    """

    model_config = ConfigDict(frozen=True)

    language: str | None = None
    topic: str | None = None
    min_stars: int | None = None
    max_stars: int | None = None
    date_range: DateRange | None = None
    show_archived: bool | None = None
    show_forks: bool | None = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class SearchOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    limit: int | None = None
    offset: int = 0
    filters: SearchFilters = Field(default_factory=SearchFilters)
    sort_by: SortField = SortField.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC


class SearchRequest(BaseModel):
    """A query as submitted by a caller."""

    model_config = ConfigDict(frozen=True)

    text: str
    type: SearchType = SearchType.KEYWORD
    options: SearchOptions = Field(default_factory=SearchOptions)


class RelevanceFactor(BaseModel):
    """One named contribution to a result's score."""

    model_config = ConfigDict(frozen=True)

    factor: str
    weight: float
    contribution: float
    description: str = ""


class TextHighlight(BaseModel):
    """Character span of a matched term inside a field value."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0)
    end: int = Field(ge=0)
    text: str
    type: Literal["exact", "fuzzy"] = "exact"


class SearchMatch(BaseModel):
    """Highlights for one field of a result, ordered by position."""

    model_config = ConfigDict(frozen=True)

    field: str
    value: str
    highlights: list[TextHighlight] = Field(default_factory=list)
    score: float = 0.0


class ResultMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    matched_fields: list[str] = Field(default_factory=list)
    relevance_factors: list[RelevanceFactor] = Field(default_factory=list)
    search_time_ms: float = 0.0
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class SearchResult(BaseModel):
    """A ranked repository plus the metadata explaining why it matched."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    repository: Repository
    score: float = Field(ge=0.0, le=1.0)
    matched_fields: list[str] = Field(default_factory=list)
    matches: list[SearchMatch] = Field(default_factory=list)
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    score: float
    type: Literal["completion", "history", "popular", "correction"] = "completion"


class ExplanationStep(BaseModel):
    """One timed stage of an explained search."""

    model_config = ConfigDict(frozen=True)

    step: str
    description: str
    elapsed_ms: float
    results: int = 0
    details: dict[str, Any] = Field(default_factory=dict)


class SearchExplanation(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    strategy: str
    steps: list[ExplanationStep] = Field(default_factory=list)
    total_ms: float = 0.0
    ranked_ids: list[str] = Field(default_factory=list)


class FieldStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    weight: float
    total_length: int = 0
    average_length: float = 0.0
    unique_terms: int = 0
    max_term_frequency: int = 0


class IndexStats(BaseModel):
    """Read-only aggregate over the index, recomputed on demand."""

    model_config = ConfigDict(frozen=True)

    total_documents: int = 0
    total_terms: int = 0
    average_document_length: float = 0.0
    field_statistics: dict[str, FieldStatistics] = Field(default_factory=dict)


class SearchStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_documents: int = 0
    total_terms: int = 0
    index_size: int = 0
    search_time_ms: float = 0.0
    total_searches: int = 0
    cache_size: int = 0


class HistoryEntry(BaseModel):
    """A recorded search, as stored by the history collaborator."""

    model_config = ConfigDict(frozen=True)

    id: str
    query: str
    type: SearchType = SearchType.KEYWORD
    result_count: int = 0
    execution_time_ms: float = 0.0
    filters: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    error: str | None = None
