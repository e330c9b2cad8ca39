"""Unified search engine facade.

Owns one ``IndexManager`` and one ``QueryEngine`` and exposes the operations
callers use: lifecycle, search, suggestions, explanations, statistics and
incremental index maintenance.

Lifecycle::

    UNINITIALIZED --initialize()/load_index()--> READY --dispose()--> DISPOSED

Every operation other than ``initialize``/``load_index``/``dispose`` requires
READY and raises ``NotInitializedError`` otherwise. Query validation happens
before the index is touched, so a rejected query never shows up in history,
statistics or metrics for successful searches.

Searches share a read lock and may run concurrently; index mutations take the
write lock and are exclusive.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from enum import Enum
import logging
import threading
import time
from typing import Any, Protocol
import uuid

from repo_search.config import SearchEngineConfig, create_search_config
from repo_search.domain.model import Repository
from repo_search.domain.search import (
    HistoryEntry,
    IndexStats,
    SearchExplanation,
    SearchRequest,
    SearchResult,
    SearchStatistics,
    SearchType,
    Suggestion,
)
from repo_search.errors import (
    InvalidQueryError,
    NotInitializedError,
    SearchError,
    UnsupportedSearchTypeError,
)
from repo_search.observability.context import set_trace_context, trace_context, with_otel_span
from repo_search.observability.metrics import SEARCH_ERRORS, SEARCH_LATENCY, SEARCH_QUERIES, track_latency
from repo_search.observability.tracing import create_span
from repo_search.search.analyzers import TextAnalyzer
from repo_search.search.index import IndexManager
from repo_search.search.query_engine import QueryEngine


logger = logging.getLogger(__name__)

_UNSUPPORTED_TYPES = frozenset({SearchType.SEMANTIC, SearchType.CONVERSATIONAL})


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISPOSED = "disposed"


class HistoryRecorder(Protocol):
    """What the engine needs from a search-history collaborator."""

    def add_to_history(self, item: Mapping[str, Any]) -> HistoryEntry | None: ...  # pragma: no cover

    def get_suggestions(self, prefix: str) -> list[Suggestion]: ...  # pragma: no cover


class ReadWriteLock:
    """Many concurrent readers or one writer; writers are not starved by new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class UnifiedSearchEngine:
    """Full-text search over repository records.

    Args:
        config: Partial overrides (dict) or a complete ``SearchEngineConfig``;
            dict overrides are merged onto the defaults section by section.
        history: Optional collaborator that records searches and contributes
            history/popular suggestions.
    """

    def __init__(
        self,
        config: SearchEngineConfig | Mapping[str, Any] | None = None,
        history: HistoryRecorder | None = None,
    ) -> None:
        self.config = create_search_config(config)
        self.history = history
        self.name = f"engine-{uuid.uuid4().hex[:8]}"
        self.index = IndexManager(
            self.config,
            analyzer=TextAnalyzer(stem_cache_size=self.config.search.stem_cache_size),
        )
        self.query_engine = QueryEngine(self.index, self.config)
        self.state = EngineState.UNINITIALIZED
        self._lock = ReadWriteLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self, corpus: Iterable[Repository | Mapping[str, Any]]) -> int:
        """Build the index from ``corpus``; calling it again rebuilds from scratch."""

        if self.state is EngineState.DISPOSED:
            raise NotInitializedError("Engine has been disposed", details={"engine": self.name})
        with self._lock.write():
            total = self.index.build_index(corpus)
            self.query_engine.invalidate_caches()
            self.state = EngineState.READY
        logger.info("Engine %s ready with %d documents", self.name, total)
        return total

    def dispose(self) -> None:
        with self._lock.write():
            self.index.clear()
            self.index.analyzer.clear_cache()
            self.query_engine.invalidate_caches()
            self.state = EngineState.DISPOSED
        logger.info("Engine %s disposed", self.name)

    def is_ready(self) -> bool:
        return self.state is EngineState.READY

    def get_config(self) -> SearchEngineConfig:
        return self.config.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def search(self, request: SearchRequest | str) -> list[SearchResult]:
        request = self._validate(request)
        self._require_ready()
        search_type = request.type.value
        start = time.perf_counter()
        try:
            with (
                create_span("search.query", attributes={"search.type": search_type}) as span,
                track_latency(SEARCH_LATENCY, search_type=search_type),
            ):
                token = set_trace_context(**with_otel_span(span), engine=self.name)
                try:
                    with self._lock.read():
                        self._require_ready()
                        results = self.query_engine.search(request)
                finally:
                    trace_context.reset(token)
                span.set_attribute("search.results", len(results))
        except SearchError as err:
            SEARCH_QUERIES.labels(search_type=search_type, status="error").inc()
            SEARCH_ERRORS.labels(error_code=err.code.value).inc()
            raise
        SEARCH_QUERIES.labels(search_type=search_type, status="ok").inc()
        self._record_history(request, len(results), (time.perf_counter() - start) * 1000.0)
        return results

    def explain(self, request: SearchRequest | str) -> SearchExplanation:
        request = self._validate(request)
        with self._lock.read():
            self._require_ready()
            return self.query_engine.explain(request)

    def suggest(self, prefix: str, limit: int = 5) -> list[Suggestion]:
        """Index completions first, then history/popular suggestions, deduplicated."""

        self._require_ready()
        try:
            with self._lock.read():
                suggestions = self.query_engine.suggest(prefix, limit)
        except Exception:
            logger.exception("Suggestion lookup failed for %r", prefix)
            return []
        if self.history is None or len(suggestions) >= limit:
            return suggestions[:limit]
        try:
            extra = self.history.get_suggestions(prefix)
        except Exception as err:
            logger.warning("History suggestions unavailable: %s", err)
            return suggestions[:limit]
        seen = {suggestion.text.lower() for suggestion in suggestions}
        for suggestion in extra:
            if suggestion.text.lower() not in seen:
                suggestions.append(suggestion)
                seen.add(suggestion.text.lower())
        return suggestions[:limit]

    def get_stats(self) -> SearchStatistics:
        self._require_ready()
        with self._lock.read():
            return self.query_engine.get_statistics()

    def get_index_stats(self) -> IndexStats:
        self._require_ready()
        with self._lock.read():
            return self.index.get_index_stats()

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------
    def update_index(self, document: Repository | Mapping[str, Any]) -> bool:
        """Insert or replace one document; False when the index is full."""

        self._require_ready()
        with self._lock.write():
            added = self.index.upsert(document)
            self.query_engine.invalidate_caches()
        return added

    def remove_from_index(self, document_id: str | int) -> bool:
        self._require_ready()
        with self._lock.write():
            removed = self.index.remove(document_id)
            self.query_engine.invalidate_caches()
        return removed

    def serialize_index(self) -> bytes:
        self._require_ready()
        with self._lock.read():
            return self.index.serialize()

    def load_index(self, blob: bytes) -> None:
        """Replace the index with a serialized snapshot and become READY.

        A corrupt blob raises ``DeserializationError`` and leaves the engine
        (state and index) as it was.
        """

        if self.state is EngineState.DISPOSED:
            raise NotInitializedError("Engine has been disposed", details={"engine": self.name})
        with self._lock.write():
            self.index.deserialize(blob)
            self.query_engine.invalidate_caches()
            self.state = EngineState.READY

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_ready(self) -> None:
        if self.state is not EngineState.READY:
            raise NotInitializedError(
                f"Search engine is {self.state.value}",
                details={"engine": self.name, "state": self.state.value},
            )

    def _validate(self, request: SearchRequest | str) -> SearchRequest:
        if isinstance(request, str):
            request = SearchRequest(text=request)
        text = request.text
        if not text or not text.strip():
            SEARCH_ERRORS.labels(error_code=InvalidQueryError.code.value).inc()
            raise InvalidQueryError("Query text must not be empty")
        max_length = self.config.search.max_query_length
        if len(text) > max_length:
            SEARCH_ERRORS.labels(error_code=InvalidQueryError.code.value).inc()
            raise InvalidQueryError(
                f"Query text exceeds {max_length} characters",
                details={"length": len(text), "max_length": max_length},
            )
        if request.type in _UNSUPPORTED_TYPES:
            SEARCH_ERRORS.labels(error_code=UnsupportedSearchTypeError.code.value).inc()
            raise UnsupportedSearchTypeError(
                f"Search type {request.type.value!r} is not supported",
                details={"type": request.type.value},
            )
        if request.type is SearchType.HYBRID:
            logger.warning("Hybrid search is not available; falling back to keyword search")
        return request

    def _record_history(self, request: SearchRequest, result_count: int, execution_time_ms: float) -> None:
        if self.history is None:
            return
        item = {
            "query": request.text,
            "type": request.type.value,
            "result_count": result_count,
            "execution_time_ms": execution_time_ms,
            "filters": request.options.filters.model_dump(mode="json", exclude_none=True),
        }
        try:
            self.history.add_to_history(item)
        except Exception as err:
            logger.warning("Failed to record search history: %s", err)


def create_search_engine(
    config: SearchEngineConfig | Mapping[str, Any] | None = None,
    history: HistoryRecorder | None = None,
) -> UnifiedSearchEngine:
    return UnifiedSearchEngine(config, history)
