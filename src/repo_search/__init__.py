"""Full-text search over GitHub-style repository records."""

from repo_search.config import SearchEngineConfig, create_search_config
from repo_search.engine import EngineState, UnifiedSearchEngine, create_search_engine
from repo_search.errors import (
    DeserializationError,
    IndexCorruptionError,
    InvalidQueryError,
    NotInitializedError,
    SearchError,
    UnsupportedSearchTypeError,
)


__all__ = [
    "DeserializationError",
    "EngineState",
    "IndexCorruptionError",
    "InvalidQueryError",
    "NotInitializedError",
    "SearchEngineConfig",
    "SearchError",
    "UnifiedSearchEngine",
    "UnsupportedSearchTypeError",
    "create_search_config",
    "create_search_engine",
]
