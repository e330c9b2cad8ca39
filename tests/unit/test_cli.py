"""Unit tests for the command line interface."""

from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from repo_search import cli


pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.chdir(tmp_path)
    for name in ("PRESET", "LOG_LEVEL", "LOG_JSON", "HISTORY_PATH", "DEFAULT_LIMIT", "MAX_LIMIT", "MAX_DOCUMENTS"):
        monkeypatch.delenv(f"REPO_SEARCH_{name}", raising=False)


@pytest.fixture
def corpus_path(tmp_path: Path, extended_corpus) -> Path:
    path = tmp_path / "repos.json"
    path.write_bytes(orjson.dumps(extended_corpus))
    return path


def _run(capsys, *argv: str) -> tuple[int, object]:
    code = cli.main(list(argv))
    out = capsys.readouterr().out
    return code, orjson.loads(out) if out.strip() else None


def test_search_prints_results(capsys, corpus_path: Path) -> None:
    code, payload = _run(capsys, "--corpus", str(corpus_path), "search", "owner:facebook")

    assert code == 0
    assert [item["document_id"] for item in payload] == ["1"]
    assert payload[0]["repository"]["name"] == "react"


def test_search_hides_archived_by_default(capsys, corpus_path: Path) -> None:
    _, hidden = _run(capsys, "--corpus", str(corpus_path), "search", "react")
    _, shown = _run(capsys, "--corpus", str(corpus_path), "search", "react", "--show-archived")

    assert [item["document_id"] for item in hidden] == ["1"]
    assert {item["document_id"] for item in shown} == {"1", "4"}


def test_search_filters_and_sorting(capsys, corpus_path: Path) -> None:
    code, payload = _run(
        capsys,
        "--corpus",
        str(corpus_path),
        "search",
        "javascript",
        "--language",
        "TypeScript",
        "--sort",
        "stars",
        "--order",
        "asc",
    )

    assert code == 0
    assert [item["document_id"] for item in payload] == ["3", "2"]


def test_search_explain(capsys, corpus_path: Path) -> None:
    code, payload = _run(capsys, "--corpus", str(corpus_path), "search", "react", "--explain")

    assert code == 0
    assert payload["strategy"] == "keyword_tfidf"
    assert payload["ranked_ids"] == ["1"]


def test_suggest_and_stats(capsys, corpus_path: Path) -> None:
    _, suggestions = _run(capsys, "--corpus", str(corpus_path), "suggest", "rea")
    _, stats = _run(capsys, "--corpus", str(corpus_path), "stats")

    assert suggestions[0]["text"] == "react"
    assert stats["search"]["total_documents"] == 5
    assert stats["index"]["total_documents"] == 5


def test_build_then_search_index(capsys, corpus_path: Path, tmp_path: Path) -> None:
    output = tmp_path / "repos.idx"
    code, payload = _run(capsys, "--corpus", str(corpus_path), "build", "--output", str(output))

    assert code == 0
    assert payload["documents"] == 5
    assert output.read_bytes()[:4] == b"RSIX"

    code, results = _run(capsys, "--index", str(output), "search", "flask")
    assert code == 0
    assert [item["document_id"] for item in results] == ["5"]


def test_corpus_wrapped_in_items(capsys, tmp_path: Path, corpus) -> None:
    path = tmp_path / "wrapped.json"
    path.write_bytes(orjson.dumps({"total_count": 3, "items": corpus}))

    code, payload = _run(capsys, "--corpus", str(path), "stats")
    assert code == 0
    assert payload["index"]["total_documents"] == 3


def test_history_file_is_written(capsys, corpus_path: Path, tmp_path: Path, monkeypatch) -> None:
    history_path = tmp_path / "history.json"
    monkeypatch.setenv("REPO_SEARCH_HISTORY_PATH", str(history_path))

    code, _ = _run(capsys, "--corpus", str(corpus_path), "search", "react")

    assert code == 0
    stored = orjson.loads(history_path.read_bytes())
    assert stored["search_history"][0]["query"] == "react"


@pytest.mark.parametrize(
    ("content", "name"),
    [
        (None, "missing.json"),
        (b"{not json", "broken.json"),
        (b'[{"name": "no id"}]', "invalid.json"),
    ],
)
def test_unreadable_corpus_exits_1(capsys, tmp_path: Path, content, name) -> None:
    path = tmp_path / name
    if content is not None:
        path.write_bytes(content)

    code = cli.main(["--corpus", str(path), "stats"])
    assert code == 1


def test_corrupt_index_exits_1(capsys, tmp_path: Path) -> None:
    path = tmp_path / "bad.idx"
    path.write_bytes(b"garbage")

    code, payload = _run(capsys, "--index", str(path), "stats")
    assert code == 1
    assert payload["error"]["code"] == "DESERIALIZATION_FAILED"


def test_invalid_query_exits_2(capsys, corpus_path: Path) -> None:
    code, payload = _run(capsys, "--corpus", str(corpus_path), "search", "   ")

    assert code == 2
    assert payload["error"]["code"] == "INVALID_QUERY"


def test_unsupported_type_exits_2(capsys, corpus_path: Path) -> None:
    code, payload = _run(capsys, "--corpus", str(corpus_path), "search", "react", "--type", "semantic")

    assert code == 2
    assert payload["error"]["code"] == "UNSUPPORTED_SEARCH_TYPE"


def test_source_is_required() -> None:
    with pytest.raises(SystemExit):
        cli.build_argument_parser().parse_args(["stats"])
