"""Shared test fixtures: a small repository corpus and ready-to-query engines."""

import copy
from typing import Any

import pytest

from repo_search.engine import UnifiedSearchEngine
from repo_search.search.index import IndexManager


def make_repo(
    repo_id: int,
    name: str,
    owner: str,
    description: str,
    language: str | None,
    topics: list[str],
    stars: int,
    forks: int,
    created_at: str,
    updated_at: str | None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a GitHub-API shaped repository payload."""

    return {
        "id": repo_id,
        "name": name,
        "owner": {"login": owner, "html_url": f"https://github.com/{owner}"},
        "description": description,
        "language": language,
        "topics": topics,
        "stargazers_count": stars,
        "forks_count": forks,
        "watchers_count": stars,
        "open_issues_count": 100,
        "created_at": created_at,
        "updated_at": updated_at,
        "pushed_at": updated_at,
        "archived": False,
        "fork": False,
        "html_url": f"https://github.com/{owner}/{name}",
        **extra,
    }


BASE_CORPUS = [
    make_repo(
        1,
        "react",
        "facebook",
        "A declarative, efficient, and flexible JavaScript library for building user interfaces.",
        "JavaScript",
        ["react", "javascript", "library", "ui", "frontend"],
        200000,
        40000,
        "2013-05-24T16:15:54Z",
        "2024-01-15T10:00:00Z",
    ),
    make_repo(
        2,
        "vue",
        "vuejs",
        "Vue.js is a progressive, incrementally-adoptable JavaScript framework for building UI on the web.",
        "TypeScript",
        ["vue", "javascript", "framework", "frontend"],
        150000,
        30000,
        "2013-07-29T03:24:51Z",
        "2024-01-10T10:00:00Z",
    ),
    make_repo(
        3,
        "typescript",
        "microsoft",
        "TypeScript is a superset of JavaScript that compiles to clean JavaScript output.",
        "TypeScript",
        ["typescript", "javascript", "language", "compiler"],
        90000,
        12000,
        "2014-06-17T15:28:39Z",
        "2024-01-20T10:00:00Z",
    ),
]

EXTRA_REPOS = [
    make_repo(
        4,
        "react-legacy",
        "oldorg",
        "Archived fork of an early React release.",
        "JavaScript",
        ["react"],
        50,
        2,
        "2015-01-01T00:00:00Z",
        "2016-01-01T00:00:00Z",
        archived=True,
        fork=True,
    ),
    make_repo(
        5,
        "flask",
        "pallets",
        "The Python micro framework for building web applications.",
        "Python",
        ["python", "flask", "web", "framework"],
        65000,
        16000,
        "2010-04-06T11:11:59Z",
        None,
    ),
]


@pytest.fixture
def corpus() -> list[dict[str, Any]]:
    """The three-repository corpus used by most scenarios."""
    return copy.deepcopy(BASE_CORPUS)


@pytest.fixture
def extended_corpus() -> list[dict[str, Any]]:
    """Base corpus plus an archived fork and an undated Python project."""
    return copy.deepcopy(BASE_CORPUS + EXTRA_REPOS)


@pytest.fixture
def index(corpus) -> IndexManager:
    manager = IndexManager()
    manager.build_index(corpus)
    return manager


@pytest.fixture
def engine(corpus):
    search_engine = UnifiedSearchEngine()
    search_engine.initialize(corpus)
    yield search_engine
    search_engine.dispose()


@pytest.fixture
def extended_engine(extended_corpus):
    search_engine = UnifiedSearchEngine()
    search_engine.initialize(extended_corpus)
    yield search_engine
    search_engine.dispose()
