"""Command line interface over a repository corpus or a serialized index."""

# ruff: noqa: T201

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import sys
from typing import Any

import orjson
from pydantic import BaseModel

from repo_search.config import EngineSettings
from repo_search.domain.search import SearchFilters, SearchOptions, SearchRequest, SearchType, SortField, SortOrder
from repo_search.engine import UnifiedSearchEngine
from repo_search.errors import SearchError
from repo_search.history import JsonFileStorage, SearchHistoryService
from repo_search.observability.logging import configure_logging


logger = logging.getLogger(__name__)

_EPILOG = """\
examples:
  repo-search --corpus repos.json search "react hooks" --limit 5
  repo-search --corpus repos.json search "owner:facebook stars:>1000" --sort stars
  repo-search --corpus repos.json build --output repos.idx
  repo-search --index repos.idx suggest rea
"""


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-search",
        description="Full-text search over GitHub-style repository records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_EPILOG,
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--corpus", type=Path, help="JSON file holding a list of repository objects")
    source.add_argument("--index", type=Path, help="Serialized index produced by the build command")
    parser.add_argument("--log-level", help="Override REPO_SEARCH_LOG_LEVEL")

    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Run a keyword query")
    search.add_argument("query", help="Query text (supports field:value, \"phrases\", ranges, * and ~)")
    search.add_argument("--limit", type=int, help="Maximum results to return")
    search.add_argument("--offset", type=int, default=0, help="Results to skip")
    search.add_argument("--sort", choices=[field.value for field in SortField], default=SortField.RELEVANCE.value)
    search.add_argument("--order", choices=[order.value for order in SortOrder], default=SortOrder.DESC.value)
    search.add_argument("--type", choices=[kind.value for kind in SearchType], default=SearchType.KEYWORD.value)
    search.add_argument("--language", help="Only repositories in this primary language")
    search.add_argument("--topic", help="Only repositories tagged with this topic")
    search.add_argument("--min-stars", type=int, help="Minimum stargazer count")
    search.add_argument("--max-stars", type=int, help="Maximum stargazer count")
    search.add_argument("--hide-forks", action="store_true", help="Exclude forked repositories")
    search.add_argument("--show-archived", action="store_true", help="Include archived repositories")
    search.add_argument("--explain", action="store_true", help="Print the timed execution steps instead")

    suggest = commands.add_parser("suggest", help="Complete a query prefix")
    suggest.add_argument("prefix")
    suggest.add_argument("--limit", type=int, default=5)

    commands.add_parser("stats", help="Print index statistics")

    build = commands.add_parser("build", help="Index the corpus and write a serialized snapshot")
    build.add_argument("--output", type=Path, required=True, help="Destination file for the index blob")
    return parser


def _request_from_args(args: argparse.Namespace) -> SearchRequest:
    filters = SearchFilters(
        language=args.language,
        topic=args.topic,
        min_stars=args.min_stars,
        max_stars=args.max_stars,
        show_forks=False if args.hide_forks else None,
        show_archived=None if args.show_archived else False,
    )
    return SearchRequest(
        text=args.query,
        type=SearchType(args.type),
        options=SearchOptions(
            limit=args.limit,
            offset=args.offset,
            filters=filters,
            sort_by=SortField(args.sort),
            sort_order=SortOrder(args.order),
        ),
    )


def _load_engine(args: argparse.Namespace, settings: EngineSettings) -> UnifiedSearchEngine:
    history = None
    if settings.history_path is not None:
        history = SearchHistoryService(JsonFileStorage(settings.history_path))
    engine = UnifiedSearchEngine(settings.to_engine_config(), history=history)
    if args.index is not None:
        engine.load_index(args.index.read_bytes())
        return engine
    corpus = orjson.loads(args.corpus.read_bytes())
    if isinstance(corpus, dict):
        corpus = corpus.get("items", [])
    engine.initialize(corpus)
    return engine


def _emit(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    elif isinstance(payload, list):
        payload = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in payload]
    print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


def _run(args: argparse.Namespace, engine: UnifiedSearchEngine) -> int:
    if args.command == "search":
        request = _request_from_args(args)
        if args.explain:
            _emit(engine.explain(request))
        else:
            _emit(engine.search(request))
        return 0
    if args.command == "suggest":
        _emit(engine.suggest(args.prefix, args.limit))
        return 0
    if args.command == "stats":
        _emit(
            {
                "search": engine.get_stats().model_dump(mode="json"),
                "index": engine.get_index_stats().model_dump(mode="json"),
            }
        )
        return 0
    if args.command == "build":
        blob = engine.serialize_index()
        args.output.write_bytes(blob)
        logger.info("Wrote %d bytes to %s", len(blob), args.output)
        _emit({"output": str(args.output), "bytes": len(blob), "documents": engine.get_stats().total_documents})
        return 0
    raise AssertionError(f"unhandled command {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    settings = EngineSettings()
    configure_logging(args.log_level or settings.log_level, settings.log_json)

    try:
        engine = _load_engine(args, settings)
    except FileNotFoundError as exc:
        logger.error("Input not found: %s", exc)
        return 1
    except orjson.JSONDecodeError as exc:
        logger.error("Corpus is not valid JSON: %s", exc)
        return 1
    except ValueError as exc:
        logger.error("Corpus contains an invalid repository record: %s", exc)
        return 1
    except SearchError as exc:
        logger.error("%s", exc.message)
        _emit({"error": exc.to_dict()})
        return 1

    try:
        return _run(args, engine)
    except SearchError as exc:
        logger.error("%s", exc.message)
        _emit({"error": exc.to_dict()})
        return 2
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
