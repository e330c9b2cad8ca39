"""Unit tests for the engine facade: lifecycle, validation, history and locking."""

from concurrent.futures import ThreadPoolExecutor
import logging
import threading

import pytest

from repo_search.domain.search import SearchOptions, SearchRequest, SearchType
from repo_search.engine import EngineState, ReadWriteLock, UnifiedSearchEngine, create_search_engine
from repo_search.errors import (
    DeserializationError,
    IndexCorruptionError,
    InvalidQueryError,
    NotInitializedError,
    UnsupportedSearchTypeError,
)
from repo_search.history import SearchHistoryService
from repo_search.observability.context import set_trace_context, trace_context
from repo_search.observability.metrics import get_metrics
from repo_search.search.models import PostingList


pytestmark = pytest.mark.unit


def _ids(results) -> list[str]:
    return [result.document_id for result in results]


def _ghost_postings(term: str) -> PostingList:
    postings = PostingList(term)
    postings.extend("999", [0])
    return postings


class _FailingHistory:
    def add_to_history(self, item):
        raise RuntimeError("disk full")

    def get_suggestions(self, prefix):
        raise RuntimeError("disk full")


class TestLifecycle:
    def test_new_engine_is_uninitialized(self) -> None:
        engine = UnifiedSearchEngine()

        assert engine.state is EngineState.UNINITIALIZED
        assert not engine.is_ready()
        with pytest.raises(NotInitializedError):
            engine.search("react")
        with pytest.raises(NotInitializedError):
            engine.get_stats()

    def test_initialize_reports_document_count(self, corpus) -> None:
        engine = create_search_engine()
        assert engine.initialize(corpus) == 3
        assert engine.is_ready()

    def test_initialize_again_rebuilds(self, engine, corpus) -> None:
        engine.initialize(corpus[:1])
        assert engine.get_stats().total_documents == 1

    def test_dispose(self, corpus) -> None:
        engine = UnifiedSearchEngine()
        engine.initialize(corpus)
        engine.dispose()

        assert engine.state is EngineState.DISPOSED
        with pytest.raises(NotInitializedError):
            engine.search("react")
        with pytest.raises(NotInitializedError):
            engine.initialize(corpus)
        with pytest.raises(NotInitializedError):
            engine.load_index(b"")

    def test_engines_do_not_share_state(self, corpus) -> None:
        first = UnifiedSearchEngine()
        second = UnifiedSearchEngine()
        first.initialize(corpus)
        second.initialize(corpus[:1])

        assert first.name != second.name
        assert first.get_stats().total_documents == 3
        assert second.get_stats().total_documents == 1
        assert first.index.analyzer is not second.index.analyzer


class TestValidation:
    def test_validation_runs_before_readiness(self) -> None:
        engine = UnifiedSearchEngine()
        with pytest.raises(InvalidQueryError):
            engine.search("   ")
        with pytest.raises(UnsupportedSearchTypeError):
            engine.search(SearchRequest(text="react", type=SearchType.SEMANTIC))

    @pytest.mark.parametrize("text", ["", " ", "\t\n", "a" * 1001])
    def test_invalid_text(self, engine, text) -> None:
        with pytest.raises(InvalidQueryError) as excinfo:
            engine.search(text)
        assert excinfo.value.code.value == "INVALID_QUERY"

    def test_max_length_is_accepted(self, engine) -> None:
        assert engine.search("a" * 1000) == []

    @pytest.mark.parametrize("search_type", [SearchType.SEMANTIC, SearchType.CONVERSATIONAL])
    def test_unsupported_types(self, engine, search_type) -> None:
        with pytest.raises(UnsupportedSearchTypeError):
            engine.search(SearchRequest(text="react", type=search_type))

    def test_hybrid_falls_back_to_keyword(self, engine, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="repo_search.engine"):
            results = engine.search(SearchRequest(text="react", type=SearchType.HYBRID))

        assert _ids(results) == _ids(engine.search("react"))
        assert "falling back to keyword" in caplog.text

    def test_explain_validates(self, engine) -> None:
        with pytest.raises(InvalidQueryError):
            engine.explain("")


class TestConfiguration:
    def test_limit_clamped_to_max(self, corpus) -> None:
        engine = UnifiedSearchEngine({"search": {"max_limit": 2}})
        engine.initialize(corpus)

        request = SearchRequest(text="javascript", options=SearchOptions(limit=50))
        assert len(engine.search(request)) == 2

    def test_zero_limit_returns_one(self, engine) -> None:
        request = SearchRequest(text="javascript", options=SearchOptions(limit=0))
        assert len(engine.search(request)) == 1

    def test_default_limit(self, corpus) -> None:
        engine = UnifiedSearchEngine({"search": {"default_limit": 1}})
        engine.initialize(corpus)
        assert len(engine.search("javascript")) == 1

    def test_get_config_returns_copy(self, engine) -> None:
        config = engine.get_config()
        config.search.max_limit = 5

        assert engine.get_config().search.max_limit == 100


class TestHistory:
    def test_accepted_search_is_recorded(self, corpus) -> None:
        history = SearchHistoryService()
        engine = UnifiedSearchEngine(history=history)
        engine.initialize(corpus)

        engine.search("react")
        entries = history.get_history()

        assert [entry.query for entry in entries] == ["react"]
        assert entries[0].result_count == 1
        assert entries[0].type is SearchType.KEYWORD
        assert entries[0].id.startswith("search-")

    def test_rejected_query_is_not_recorded(self, corpus) -> None:
        history = SearchHistoryService()
        engine = UnifiedSearchEngine(history=history)
        engine.initialize(corpus)

        with pytest.raises(InvalidQueryError):
            engine.search("")
        with pytest.raises(UnsupportedSearchTypeError):
            engine.search(SearchRequest(text="react", type=SearchType.SEMANTIC))
        assert history.get_history() == []

    def test_history_failure_does_not_fail_search(self, corpus, caplog) -> None:
        engine = UnifiedSearchEngine(history=_FailingHistory())
        engine.initialize(corpus)

        with caplog.at_level(logging.WARNING, logger="repo_search.engine"):
            results = engine.search("react")

        assert _ids(results) == ["1"]
        assert "Failed to record search history" in caplog.text

    def test_suggest_merges_history(self, corpus) -> None:
        history = SearchHistoryService()
        history.add_to_history({"query": "react hooks", "result_count": 3})
        engine = UnifiedSearchEngine(history=history)
        engine.initialize(corpus)

        suggestions = engine.suggest("rea")

        assert [(s.text, s.type) for s in suggestions] == [("react", "completion"), ("react hooks", "history")]

    def test_suggest_survives_history_failure(self, corpus) -> None:
        engine = UnifiedSearchEngine(history=_FailingHistory())
        engine.initialize(corpus)
        assert [s.text for s in engine.suggest("rea")] == ["react"]

    def test_suggest_survives_index_failure(self, engine, monkeypatch, caplog) -> None:
        def _boom(prefix, limit):
            raise RuntimeError("broken")

        monkeypatch.setattr(engine.query_engine, "suggest", _boom)
        with caplog.at_level(logging.ERROR, logger="repo_search.engine"):
            assert engine.suggest("rea") == []
        assert "Suggestion lookup failed" in caplog.text


class TestIndexMaintenance:
    def test_update_and_remove(self, engine, corpus) -> None:
        svelte = {**corpus[0], "id": 4, "name": "svelte", "description": "Cybernetically enhanced web apps"}

        assert engine.update_index(svelte) is True
        assert _ids(engine.search("svelte")) == ["4"]
        assert engine.get_stats().total_documents == 4

        assert engine.remove_from_index(4) is True
        assert engine.search("svelte") == []
        assert engine.remove_from_index(4) is False

    def test_update_replaces_document(self, engine, corpus) -> None:
        engine.update_index({**corpus[0], "description": "Hooks first"})

        assert _ids(engine.search("hooks")) == ["1"]
        assert engine.search("declarative") == []
        assert engine.get_stats().total_documents == 3

    def test_serialize_round_trip(self, engine) -> None:
        blob = engine.serialize_index()
        restored = UnifiedSearchEngine()
        restored.load_index(blob)

        assert restored.is_ready()
        assert restored.get_index_stats() == engine.get_index_stats()
        for query in ("react", "javascript framework", '"javascript library"', "owner:microsoft"):
            assert _ids(restored.search(query)) == _ids(engine.search(query))

    def test_corrupt_blob_leaves_engine_unchanged(self, engine) -> None:
        fresh = UnifiedSearchEngine()
        with pytest.raises(DeserializationError):
            fresh.load_index(b"not an index")
        assert fresh.state is EngineState.UNINITIALIZED

        with pytest.raises(DeserializationError):
            engine.load_index(b"RSIX")
        assert _ids(engine.search("react")) == ["1"]


class TestTraceContext:
    def test_search_restores_caller_context(self, engine) -> None:
        token = set_trace_context("a" * 32, "b" * 16)
        try:
            engine.search("react")
            assert trace_context.get() == {"trace_id": "a" * 32, "span_id": "b" * 16}
        finally:
            trace_context.reset(token)

    def test_failed_search_restores_caller_context(self, engine) -> None:
        token = trace_context.set(None)
        try:
            term = engine.index.analyzer.stem("ghost")
            engine.index.state.field_index["name"][term] = _ghost_postings(term)
            with pytest.raises(IndexCorruptionError):
                engine.search("ghost")
            assert trace_context.get() is None
        finally:
            trace_context.reset(token)


class TestStatistics:
    def test_stats_track_searches(self, engine) -> None:
        engine.search("react")
        engine.explain("react")
        stats = engine.get_stats()

        assert stats.total_documents == 3
        assert stats.total_searches == 1
        assert stats.total_terms > 0

    def test_index_stats(self, engine) -> None:
        stats = engine.get_index_stats()

        assert stats.total_documents == 3
        assert set(stats.field_statistics) == {"name", "description", "topics", "owner", "language"}
        assert stats.field_statistics["name"].weight == 2.0

    def test_prometheus_counters(self, engine) -> None:
        engine.search("react")
        assert b"search_queries_total" in get_metrics()


class TestConcurrency:
    def test_searches_during_updates(self, engine, corpus) -> None:
        def search(_):
            return _ids(engine.search("javascript"))

        def update(i):
            engine.update_index({**corpus[1], "id": 100 + i, "name": f"plugin{i}"})

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(search, i) for i in range(40)]
            futures += [pool.submit(update, i) for i in range(10)]
            for future in futures:
                future.result()

        assert engine.get_stats().total_documents == 13

    def test_writer_waits_for_readers(self) -> None:
        lock = ReadWriteLock()
        written = threading.Event()

        def writer():
            with lock.write():
                written.set()

        with lock.read():
            thread = threading.Thread(target=writer)
            thread.start()
            assert not written.wait(0.05)
        thread.join(timeout=1)
        assert written.is_set()

    def test_readers_share_the_lock(self) -> None:
        lock = ReadWriteLock()
        entered = threading.Event()

        def reader():
            with lock.read():
                entered.set()

        with lock.read():
            thread = threading.Thread(target=reader)
            thread.start()
            assert entered.wait(1)
        thread.join(timeout=1)
