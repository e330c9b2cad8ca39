"""Unit tests for engine configuration and environment settings."""

import pytest

from repo_search.config import (
    SEARCH_PRESETS,
    EngineSettings,
    FieldWeights,
    IndexingConfig,
    SearchConfig,
    SearchEngineConfig,
    create_search_config,
)


pytestmark = pytest.mark.unit


class TestClamping:
    def test_defaults(self) -> None:
        config = SearchEngineConfig()

        assert config.indexing.batch_size == 100
        assert config.indexing.max_documents == 10000
        assert config.search.default_limit == 20
        assert config.search.max_limit == 100
        assert config.search.fuzzy_threshold == 0.7
        assert config.indexing.field_weights.as_dict() == {
            "name": 2.0,
            "description": 1.5,
            "topics": 1.8,
            "owner": 1.2,
            "language": 1.0,
        }

    @pytest.mark.parametrize(
        ("overrides", "expected"),
        [
            ({"max_limit": 0}, 1),
            ({"max_limit": 5000}, 1000),
            ({"max_limit": 50}, 50),
        ],
    )
    def test_max_limit(self, overrides, expected) -> None:
        assert SearchConfig(**overrides).max_limit == expected

    def test_default_limit_never_exceeds_max(self) -> None:
        config = SearchConfig(default_limit=500, max_limit=50)
        assert config.default_limit == 50

    def test_other_bounds(self) -> None:
        assert IndexingConfig(batch_size=0, max_documents=-1).batch_size == 1
        assert IndexingConfig(max_documents=-1).max_documents == 1
        assert SearchConfig(fuzzy_threshold=1.5).fuzzy_threshold == 1.0
        assert SearchConfig(stem_cache_size=1).stem_cache_size == 16
        assert FieldWeights(name=-3).name == 0.0

    @pytest.mark.parametrize(("limit", "expected"), [(None, 20), (0, 1), (-4, 1), (10, 10), (10**6, 100)])
    def test_clamp_limit(self, limit, expected) -> None:
        assert SearchConfig().clamp_limit(limit) == expected

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValueError):
            SearchConfig(unknown=1)


class TestCreateSearchConfig:
    def test_partial_override_keeps_siblings(self) -> None:
        config = create_search_config({"search": {"max_limit": 10}, "indexing": {"field_weights": {"name": 3.0}}})

        assert config.search.max_limit == 10
        assert config.search.default_limit == 10
        assert config.search.timeout_ms == 5000
        assert config.indexing.field_weights.name == 3.0
        assert config.indexing.field_weights.topics == 1.8

    def test_full_config_passes_through(self) -> None:
        config = SearchEngineConfig()
        assert create_search_config(config) is config

    def test_base(self) -> None:
        config = create_search_config({"search": {"timeout_ms": 42}}, base=SEARCH_PRESETS["memory"])

        assert config.search.timeout_ms == 42
        assert config.search.max_limit == 50

    def test_presets(self) -> None:
        assert set(SEARCH_PRESETS) == {"default", "performance", "memory", "development"}
        assert SEARCH_PRESETS["performance"].indexing.max_documents == 20000
        assert SEARCH_PRESETS["memory"].search.stem_cache_size == 1000


class TestEngineSettings:
    def test_defaults(self, monkeypatch) -> None:
        for name in ("PRESET", "LOG_LEVEL", "LOG_JSON", "HISTORY_PATH", "DEFAULT_LIMIT", "MAX_LIMIT"):
            monkeypatch.delenv(f"REPO_SEARCH_{name}", raising=False)
        settings = EngineSettings(_env_file=None)

        assert settings.preset == "default"
        assert settings.history_path is None
        assert settings.to_engine_config() == SearchEngineConfig()

    def test_environment_overrides(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("REPO_SEARCH_PRESET", "development")
        monkeypatch.setenv("REPO_SEARCH_MAX_LIMIT", "25")
        monkeypatch.setenv("REPO_SEARCH_LOG_JSON", "true")
        monkeypatch.setenv("REPO_SEARCH_HISTORY_PATH", str(tmp_path / "h.json"))
        settings = EngineSettings(_env_file=None)
        config = settings.to_engine_config()

        assert settings.log_json is True
        assert settings.history_path == tmp_path / "h.json"
        assert config.search.max_limit == 25
        assert config.search.default_limit == 10
        assert config.indexing.max_documents == 1000

    def test_invalid_preset(self, monkeypatch) -> None:
        monkeypatch.setenv("REPO_SEARCH_PRESET", "turbo")
        with pytest.raises(ValueError):
            EngineSettings(_env_file=None)
