"""Search history collaborator.

The engine records each accepted search here; the service derives recent and
popular queries from what it stored. Storage is a small key-value protocol so
callers can keep history in memory (tests, one-shot CLI runs) or in a JSON
file that survives restarts.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
import logging
import math
import os
from pathlib import Path
import threading
from typing import Any, Protocol
import uuid

import orjson
from pydantic import ValidationError

from repo_search.domain.search import HistoryEntry, Suggestion


logger = logging.getLogger(__name__)

HISTORY_KEY = "search_history"
STATS_KEY = "search_stats"
MAX_HISTORY_ITEMS = 100
MAX_POPULAR_TERMS = 100
SUGGESTION_LIMIT = 10
_SOURCE_LIMIT = 5
_IGNORED_TERMS = frozenset({"and", "or", "not"})


class KeyValueStorage(Protocol):
    """Minimal persistence interface used by ``SearchHistoryService``."""

    def get(self, key: str) -> Any | None: ...  # pragma: no cover - interface definition

    def set(self, key: str, value: Any) -> None: ...  # pragma: no cover - interface definition

    def remove(self, key: str) -> None: ...  # pragma: no cover - interface definition


class MemoryStorage:
    """Process-local storage; values are copied through JSON on the way in."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return orjson.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = orjson.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """All keys in one JSON object on disk, rewritten atomically on every change."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

    def _read(self) -> dict[str, Any]:
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            data = orjson.loads(content)
        except orjson.JSONDecodeError as err:
            logger.warning("Ignoring unreadable history file %s: %s", self.path, err)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))
        os.replace(tmp_path, self.path)


def extract_search_terms(query: str) -> list[str]:
    """Words worth counting as popular: longer than 2 chars, no operators or field clauses."""

    return [
        term
        for term in query.lower().split()
        if len(term) > 2 and term not in _IGNORED_TERMS and ":" not in term
    ]


class SearchHistoryService:
    """Bounded, newest-first search history with popular-term statistics."""

    def __init__(self, storage: KeyValueStorage | None = None, *, max_items: int = MAX_HISTORY_ITEMS) -> None:
        self.storage = storage or MemoryStorage()
        self.max_items = max(1, max_items)
        self._lock = threading.Lock()

    def add_to_history(self, item: Mapping[str, Any]) -> HistoryEntry:
        """Store ``item`` (query, type, result_count, execution_time_ms, filters).

        ``id`` and ``timestamp`` are assigned here. Storage errors propagate.
        """

        entry = HistoryEntry.model_validate(
            {
                **item,
                "id": f"search-{uuid.uuid4().hex[:12]}",
                "timestamp": datetime.now(timezone.utc),
            }
        )
        with self._lock:
            history = self.get_history()
            history.insert(0, entry)
            self.storage.set(HISTORY_KEY, [e.model_dump(mode="json") for e in history[: self.max_items]])
            self._update_stats(entry.query)
        return entry

    def get_history(self) -> list[HistoryEntry]:
        raw = self.storage.get(HISTORY_KEY) or []
        entries: list[HistoryEntry] = []
        for item in raw:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError as err:
                logger.debug("Skipping malformed history entry: %s", err)
        return entries

    def get_recent_searches(self, limit: int = 10) -> list[HistoryEntry]:
        return self.get_history()[: max(0, limit)]

    def get_popular_searches(self, limit: int = 10) -> list[Suggestion]:
        terms = self.get_search_stats()["popular_terms"]
        ranked = sorted(terms.items(), key=lambda item: item[1], reverse=True)[: max(0, limit)]
        return [Suggestion(text=text, score=float(count), type="popular") for text, count in ranked]

    def get_suggestions(self, prefix: str) -> list[Suggestion]:
        """History entries containing ``prefix`` plus popular terms, best first."""

        needle = (prefix or "").strip().lower()
        if len(needle) < 2:
            return []

        now = datetime.now(timezone.utc)
        suggestions: list[Suggestion] = []
        history_matches = [
            entry
            for entry in self.get_history()
            if needle in entry.query.lower() and entry.query.lower() != needle
        ]
        for entry in history_matches[:_SOURCE_LIMIT]:
            suggestions.append(Suggestion(text=entry.query, score=_history_score(entry, needle, now), type="history"))

        terms = self.get_search_stats()["popular_terms"]
        popular = sorted(
            ((term, count) for term, count in terms.items() if needle in term.lower()),
            key=lambda item: item[1],
            reverse=True,
        )
        for term, count in popular[:_SOURCE_LIMIT]:
            suggestions.append(Suggestion(text=term, score=count * _relevance(term, needle), type="popular"))

        unique: dict[str, Suggestion] = {}
        for suggestion in suggestions:
            unique.setdefault(suggestion.text, suggestion)
        ranked = sorted(unique.values(), key=lambda suggestion: suggestion.score, reverse=True)
        return ranked[:SUGGESTION_LIMIT]

    def clear_history(self) -> None:
        with self._lock:
            self.storage.remove(HISTORY_KEY)
            self.storage.remove(STATS_KEY)

    def get_search_stats(self) -> dict[str, Any]:
        stats = self.storage.get(STATS_KEY) or {}
        return {
            "total_searches": int(stats.get("total_searches", 0)),
            "popular_terms": dict(stats.get("popular_terms", {})),
        }

    def _update_stats(self, query: str) -> None:
        stats = self.get_search_stats()
        stats["total_searches"] += 1
        terms: dict[str, int] = stats["popular_terms"]
        for term in extract_search_terms(query):
            terms[term] = terms.get(term, 0) + 1
        ranked = sorted(terms.items(), key=lambda item: item[1], reverse=True)[:MAX_POPULAR_TERMS]
        stats["popular_terms"] = dict(ranked)
        self.storage.set(STATS_KEY, stats)


def _history_score(entry: HistoryEntry, needle: str, now: datetime) -> float:
    query = entry.query.lower()
    score = 0.0
    if query.startswith(needle):
        score += 10.0
    if needle in query:
        score += 5.0
    if entry.result_count > 0:
        score += min(entry.result_count / 10, 5.0)
    timestamp = entry.timestamp if entry.timestamp.tzinfo else entry.timestamp.replace(tzinfo=timezone.utc)
    hours_ago = max((now - timestamp).total_seconds() / 3600.0, 0.0)
    # One-week decay.
    return score * math.exp(-hours_ago / 168.0)


def _relevance(term: str, needle: str) -> float:
    lowered = term.lower()
    if lowered == needle:
        return 1.0
    if lowered.startswith(needle):
        return 0.8
    if needle in lowered:
        return 0.5
    return 0.2
