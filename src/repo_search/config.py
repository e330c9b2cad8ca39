"""Configuration for the repository search engine using Pydantic.

Two layers live here:

- ``SearchEngineConfig`` and its sections describe how one engine instance
  indexes and searches. Out-of-range values are clamped into a safe range
  instead of failing validation, so callers can pass user-supplied numbers
  straight through.
- ``EngineSettings`` loads process-level settings from ``REPO_SEARCH_*``
  environment variables (or a ``.env`` file) and resolves them to a
  ``SearchEngineConfig``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class FieldWeights(BaseModel):
    """Per-field multipliers applied to TF-IDF contributions."""

    model_config = {"extra": "forbid"}

    name: Annotated[float, Field(description="Weight for repository name matches")] = 2.0
    description: Annotated[float, Field(description="Weight for description matches")] = 1.5
    topics: Annotated[float, Field(description="Weight for topic tag matches")] = 1.8
    owner: Annotated[float, Field(description="Weight for owner login matches")] = 1.2
    language: Annotated[float, Field(description="Weight for primary language matches")] = 1.0

    @field_validator("*", mode="after")
    @classmethod
    def _clamp_weight(cls, value: float) -> float:
        return _clamp(value, 0.0, 10.0)

    def as_dict(self) -> dict[str, float]:
        return self.model_dump()


class IndexingConfig(BaseModel):
    """Index construction limits."""

    model_config = {"extra": "forbid"}

    batch_size: Annotated[int, Field(description="Documents analyzed per batch during a full build")] = 100
    max_documents: Annotated[int, Field(description="Hard cap on indexed documents; extra input is dropped")] = 10000
    field_weights: FieldWeights = Field(default_factory=FieldWeights)

    @field_validator("batch_size", mode="after")
    @classmethod
    def _clamp_batch_size(cls, value: int) -> int:
        return int(_clamp(value, 1, 10000))

    @field_validator("max_documents", mode="after")
    @classmethod
    def _clamp_max_documents(cls, value: int) -> int:
        return int(_clamp(value, 1, 1_000_000))


class SearchConfig(BaseModel):
    """Query execution limits and tuning knobs."""

    model_config = {"extra": "forbid"}

    default_limit: Annotated[int, Field(description="Page size used when a request sets no limit")] = 20
    max_limit: Annotated[int, Field(description="Largest page size a request may ask for")] = 100
    timeout_ms: Annotated[
        int,
        Field(description="Advisory budget for a single search; exceeding it is logged, not enforced"),
    ] = 5000
    fuzzy_threshold: Annotated[
        float,
        Field(description="Minimum similarity ratio for fuzzy suggestion corrections"),
    ] = 0.7
    max_query_length: Annotated[int, Field(description="Longest accepted query text in characters")] = 1000
    stem_cache_size: Annotated[int, Field(description="Capacity of the analyzer stem LRU cache")] = 10000

    @field_validator("max_limit", mode="after")
    @classmethod
    def _clamp_max_limit(cls, value: int) -> int:
        return int(_clamp(value, 1, 1000))

    @field_validator("default_limit", mode="after")
    @classmethod
    def _clamp_default_limit(cls, value: int) -> int:
        return int(max(1, value))

    @field_validator("timeout_ms", mode="after")
    @classmethod
    def _clamp_timeout(cls, value: int) -> int:
        return int(_clamp(value, 1, 600_000))

    @field_validator("fuzzy_threshold", mode="after")
    @classmethod
    def _clamp_fuzzy_threshold(cls, value: float) -> float:
        return _clamp(value, 0.0, 1.0)

    @field_validator("max_query_length", mode="after")
    @classmethod
    def _clamp_query_length(cls, value: int) -> int:
        return int(_clamp(value, 1, 100_000))

    @field_validator("stem_cache_size", mode="after")
    @classmethod
    def _clamp_stem_cache(cls, value: int) -> int:
        return int(_clamp(value, 16, 1_000_000))

    @model_validator(mode="after")
    def _default_within_max(self) -> SearchConfig:
        if self.default_limit > self.max_limit:
            self.default_limit = self.max_limit
        return self

    def clamp_limit(self, limit: int | None) -> int:
        """Return ``limit`` clamped into ``[1, max_limit]`` (default when unset)."""

        if limit is None:
            return self.default_limit
        return int(_clamp(limit, 1, self.max_limit))


class SearchEngineConfig(BaseModel):
    """Complete configuration for one engine instance."""

    model_config = {"extra": "forbid"}

    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)


def _deep_merge(base: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def create_search_config(
    overrides: Mapping[str, Any] | SearchEngineConfig | None = None,
    *,
    base: SearchEngineConfig | None = None,
) -> SearchEngineConfig:
    """Merge partial overrides onto defaults (or ``base``) section by section."""

    if isinstance(overrides, SearchEngineConfig):
        return overrides
    start = (base or SearchEngineConfig()).model_dump()
    if not overrides:
        return SearchEngineConfig.model_validate(start)
    return SearchEngineConfig.model_validate(_deep_merge(start, overrides))


SEARCH_PRESETS: dict[str, SearchEngineConfig] = {
    "default": SearchEngineConfig(),
    "performance": create_search_config(
        {
            "indexing": {"batch_size": 200, "max_documents": 20000},
            "search": {"default_limit": 50, "max_limit": 200, "timeout_ms": 10000},
        }
    ),
    "memory": create_search_config(
        {
            "indexing": {"batch_size": 50, "max_documents": 5000},
            "search": {"default_limit": 10, "max_limit": 50, "timeout_ms": 3000, "stem_cache_size": 1000},
        }
    ),
    "development": create_search_config(
        {
            "indexing": {"batch_size": 20, "max_documents": 1000},
            "search": {"default_limit": 10, "max_limit": 50, "timeout_ms": 1000},
        }
    ),
}


class EngineSettings(BaseSettings):
    """Process-level settings loaded from ``REPO_SEARCH_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="REPO_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    preset: Literal["default", "performance", "memory", "development"] = Field(
        default="default", description="Named configuration preset"
    )
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=False, description="Emit structured JSON logs")
    history_path: Path | None = Field(default=None, description="JSON file backing search history")
    default_limit: int | None = Field(default=None, description="Override search.default_limit")
    max_limit: int | None = Field(default=None, description="Override search.max_limit")
    max_documents: int | None = Field(default=None, description="Override indexing.max_documents")

    def to_engine_config(self) -> SearchEngineConfig:
        search_overrides: dict[str, Any] = {}
        if self.default_limit is not None:
            search_overrides["default_limit"] = self.default_limit
        if self.max_limit is not None:
            search_overrides["max_limit"] = self.max_limit
        indexing_overrides: dict[str, Any] = {}
        if self.max_documents is not None:
            indexing_overrides["max_documents"] = self.max_documents
        return create_search_config(
            {"search": search_overrides, "indexing": indexing_overrides},
            base=SEARCH_PRESETS[self.preset],
        )
