"""In-memory inverted index over repository records.

``IndexManager`` keeps three structures in step:

* a document table keyed by id, in insertion order (the tie-break order used
  by ranking; an upsert keeps the document's original slot),
* one sub-index per text field mapping analyzed term -> ``PostingList`` with
  per-field token positions,
* a global index whose postings carry positions into the document's
  concatenated searchable text.

For every term the global document frequency equals the number of distinct
documents across its field posting lists and the global term frequency of a
(term, document) pair equals the sum of its field frequencies. Empty posting
lists are dropped eagerly so removal never leaves orphans.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
import logging
from typing import Any

from repo_search.config import SearchEngineConfig
from repo_search.domain.model import Repository
from repo_search.domain.search import FieldStatistics, IndexStats
from repo_search.errors import IndexCorruptionError
from repo_search.observability.metrics import INDEX_DOCUMENTS
from repo_search.observability.tracing import create_span
from repo_search.search.analyzers import TextAnalyzer, normalize_text
from repo_search.search.models import PostingList
from repo_search.search.schema import Schema, create_repository_schema
from repo_search.search.stats import calculate_idf, compute_field_length_stats, tf_idf


logger = logging.getLogger(__name__)

# Gap inserted between fields in the concatenated text so phrases never span fields.
FIELD_POSITION_GAP = 1


@dataclass
class IndexedDocument:
    """A repository plus everything needed to remove it from the index again."""

    doc_id: str
    repository: Repository
    field_terms: dict[str, dict[str, list[int]]] = field(default_factory=dict)
    field_offsets: dict[str, int] = field(default_factory=dict)
    surfaces: frozenset[str] = frozenset()

    @property
    def field_lengths(self) -> dict[str, int]:
        return {name: sum(len(p) for p in terms.values()) for name, terms in self.field_terms.items()}

    @property
    def length(self) -> int:
        return sum(self.field_lengths.values())

    def global_terms(self) -> dict[str, list[int]]:
        """Term -> positions in the concatenated searchable text."""
        merged: dict[str, set[int]] = {}
        for field_name, terms in self.field_terms.items():
            offset = self.field_offsets.get(field_name, 0)
            for term, positions in terms.items():
                merged.setdefault(term, set()).update(offset + position for position in positions)
        return {term: sorted(positions) for term, positions in merged.items()}


@dataclass
class IndexState:
    """The mutable index structures; swapped wholesale on deserialize."""

    schema: Schema
    documents: dict[str, IndexedDocument] = field(default_factory=dict)
    global_index: dict[str, PostingList] = field(default_factory=dict)
    field_index: dict[str, dict[str, PostingList]] = field(default_factory=dict)
    surface_counts: dict[str, int] = field(default_factory=dict)

    def insert(self, document: IndexedDocument) -> None:
        self.documents[document.doc_id] = document
        for field_name, terms in document.field_terms.items():
            sub_index = self.field_index.setdefault(field_name, {})
            for term, positions in terms.items():
                sub_index.setdefault(term, PostingList(term)).extend(document.doc_id, positions)
        for term, positions in document.global_terms().items():
            self.global_index.setdefault(term, PostingList(term)).extend(document.doc_id, positions)
        for surface in document.surfaces:
            self.surface_counts[surface] = self.surface_counts.get(surface, 0) + 1

    def unindex(self, document: IndexedDocument) -> None:
        """Drop every posting of ``document``; the document table entry stays."""
        for field_name, terms in document.field_terms.items():
            sub_index = self.field_index.get(field_name, {})
            for term in terms:
                postings = sub_index.get(term)
                if postings is not None:
                    postings.remove(document.doc_id)
                    if not postings:
                        del sub_index[term]
            if field_name in self.field_index and not sub_index:
                del self.field_index[field_name]
        for term in document.global_terms():
            postings = self.global_index.get(term)
            if postings is not None:
                postings.remove(document.doc_id)
                if not postings:
                    del self.global_index[term]
        for surface in document.surfaces:
            remaining = self.surface_counts.get(surface, 0) - 1
            if remaining > 0:
                self.surface_counts[surface] = remaining
            else:
                self.surface_counts.pop(surface, None)


class IndexManager:
    """Builds and maintains the inverted index for one engine instance."""

    def __init__(
        self,
        config: SearchEngineConfig | None = None,
        *,
        analyzer: TextAnalyzer | None = None,
        schema: Schema | None = None,
    ) -> None:
        self.config = config or SearchEngineConfig()
        self.analyzer = analyzer or TextAnalyzer(stem_cache_size=self.config.search.stem_cache_size)
        self._state = IndexState(schema=schema or create_repository_schema(self.config.indexing.field_weights))
        self.version = 0

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def build_index(self, documents: Iterable[Repository | Mapping[str, Any]]) -> int:
        """Clear the index and ingest ``documents``; returns the number indexed.

        Documents are analyzed in batches of ``indexing.batch_size``; input past
        ``indexing.max_documents`` is dropped with a warning.
        """

        batch_size = self.config.indexing.batch_size
        max_documents = self.config.indexing.max_documents
        with create_span("index.build", attributes={"index.batch_size": batch_size}) as span:
            state = IndexState(schema=self._state.schema)
            batch: list[Repository] = []
            seen = 0
            truncated = False
            for raw in documents:
                if seen >= max_documents:
                    truncated = True
                    break
                batch.append(coerce_repository(raw))
                seen += 1
                if len(batch) >= batch_size:
                    self._ingest_batch(state, batch)
                    batch = []
            if batch:
                self._ingest_batch(state, batch)
            if truncated:
                logger.warning("Corpus truncated to indexing.max_documents=%d", max_documents)
            self._state = state
            self._touch()
            total = len(self._state.documents)
            span.set_attribute("index.documents", total)
            span.set_attribute("index.terms", len(self._state.global_index))
            logger.info("Built index: %d documents, %d terms", total, len(self._state.global_index))
            return total

    def add_document(self, document: Repository | Mapping[str, Any]) -> bool:
        """Index a document; an existing id is replaced (see ``upsert``)."""

        return self.upsert(document)

    def upsert(self, document: Repository | Mapping[str, Any]) -> bool:
        """Remove any prior postings for the document id, then reinsert it.

        Returns False (and logs a warning) when a new document would exceed
        ``indexing.max_documents``.
        """

        repository = coerce_repository(document)
        existing = self._state.documents.get(repository.id)
        if existing is None and len(self._state.documents) >= self.config.indexing.max_documents:
            logger.warning(
                "Refusing to index %s: indexing.max_documents=%d reached",
                repository.id,
                self.config.indexing.max_documents,
            )
            return False
        if existing is not None:
            self._state.unindex(existing)
        self._state.insert(self._analyze(repository))
        self._touch()
        logger.debug("Indexed document %s (replaced=%s)", repository.id, existing is not None)
        return True

    def remove(self, doc_id: str | int) -> bool:
        """Delete every posting of ``doc_id``; returns False when it is unknown."""

        key = str(doc_id)
        existing = self._state.documents.get(key)
        if existing is None:
            return False
        self._state.unindex(existing)
        del self._state.documents[key]
        self._touch()
        logger.debug("Removed document %s", key)
        return True

    def clear(self) -> None:
        self._state = IndexState(schema=self._state.schema)
        self._touch()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------
    @property
    def schema(self) -> Schema:
        return self._state.schema

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def total_documents(self) -> int:
        return len(self._state.documents)

    def resolve_term(self, term: str) -> str:
        """Map user input to the analyzed form stored in the index."""
        return self.analyzer.stem(normalize_text(term))

    def get_posting_list(self, term: str) -> PostingList | None:
        return self._state.global_index.get(self.resolve_term(term))

    def get_field_posting_list(self, field_name: str, term: str) -> PostingList | None:
        sub_index = self._state.field_index.get(field_name)
        if sub_index is None:
            return None
        return sub_index.get(self.resolve_term(term))

    def get_field_terms(self, field_name: str) -> list[str]:
        return list(self._state.field_index.get(field_name, {}))

    def get_all_terms(self) -> list[str]:
        return list(self._state.global_index)

    def get_vocabulary(self) -> list[str]:
        """Unstemmed normalized words seen in indexed text, sorted."""
        return sorted(self._state.surface_counts)

    def get_document(self, doc_id: str | int) -> Repository | None:
        indexed = self._state.documents.get(str(doc_id))
        return indexed.repository if indexed is not None else None

    def get_indexed_document(self, doc_id: str) -> IndexedDocument | None:
        return self._state.documents.get(doc_id)

    def document_ids(self) -> list[str]:
        """Document ids in insertion order."""
        return list(self._state.documents)

    def __len__(self) -> int:
        return len(self._state.documents)

    def __contains__(self, doc_id: object) -> bool:
        return str(doc_id) in self._state.documents

    def __iter__(self) -> Iterator[Repository]:
        return (indexed.repository for indexed in self._state.documents.values())

    def calculate_tf_idf(self, term: str, doc_id: str | int) -> float:
        """Raw term frequency in the concatenated text times ``log(max(N/df, 1))``.

        Returns 0 when the term or the document is unknown.
        """

        postings = self.get_posting_list(term)
        if postings is None:
            return 0.0
        posting = postings.get(str(doc_id))
        if posting is None:
            return 0.0
        return tf_idf(posting.frequency, postings.document_frequency, self.total_documents)

    def field_idf(self, field_name: str, term: str) -> float:
        postings = self._state.field_index.get(field_name, {}).get(term)
        if postings is None:
            return 0.0
        return calculate_idf(postings.document_frequency, self.total_documents)

    def get_index_stats(self) -> IndexStats:
        state = self._state
        total_documents = len(state.documents)
        if total_documents == 0:
            return IndexStats()
        field_lengths: dict[str, dict[str, int]] = {name: {} for name in state.schema.text_field_names}
        for indexed in state.documents.values():
            for name, length in indexed.field_lengths.items():
                field_lengths.setdefault(name, {})[indexed.doc_id] = length
        length_stats = compute_field_length_stats(field_lengths)
        field_statistics: dict[str, FieldStatistics] = {}
        for name, lengths in length_stats.items():
            sub_index = state.field_index.get(name, {})
            max_tf = max(
                (posting.frequency for postings in sub_index.values() for posting in postings),
                default=0,
            )
            field_statistics[name] = FieldStatistics(
                field=name,
                weight=state.schema.get_boost(name),
                total_length=lengths.total_terms,
                average_length=lengths.average_length,
                unique_terms=len(sub_index),
                max_term_frequency=max_tf,
            )
        total_length = sum(indexed.length for indexed in state.documents.values())
        return IndexStats(
            total_documents=total_documents,
            total_terms=len(state.global_index),
            average_document_length=total_length / total_documents,
            field_statistics=field_statistics,
        )

    def estimated_size(self) -> int:
        """Approximate number of stored postings entries."""
        return sum(len(postings) for postings in self._state.global_index.values()) + sum(
            len(postings) for sub_index in self._state.field_index.values() for postings in sub_index.values()
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def serialize(self) -> bytes:
        from repo_search.search.serialization import serialize_index

        return serialize_index(self._state)

    def deserialize(self, blob: bytes) -> None:
        """Replace the index with the content of ``blob``.

        The current index is untouched unless the whole blob decodes.
        """

        from repo_search.search.serialization import deserialize_index

        state = deserialize_index(blob)
        check_integrity(state)
        self._state = state
        self._touch()
        logger.info(
            "Loaded serialized index: %d documents, %d terms", len(state.documents), len(state.global_index)
        )

    def verify_integrity(self) -> None:
        check_integrity(self._state)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _ingest_batch(self, state: IndexState, batch: list[Repository]) -> None:
        for repository in batch:
            existing = state.documents.get(repository.id)
            if existing is not None:
                state.unindex(existing)
            state.insert(self._analyze(repository))
        logger.debug("Indexed batch of %d documents (%d total)", len(batch), len(state.documents))

    def _analyze(self, repository: Repository) -> IndexedDocument:
        texts = repository.searchable_fields()
        field_terms: dict[str, dict[str, list[int]]] = {}
        field_offsets: dict[str, int] = {}
        surfaces: set[str] = set()
        offset = 0
        for field_name in self._state.schema.text_field_names:
            text = texts.get(field_name)
            if not text:
                continue
            tokens = self.analyzer.analyze(text, field_name)
            if not tokens:
                continue
            terms: dict[str, set[int]] = {}
            for token in tokens:
                terms.setdefault(token.normalized, set()).add(token.position)
                surfaces.add(normalize_text(token.text))
            field_terms[field_name] = {term: sorted(positions) for term, positions in terms.items()}
            field_offsets[field_name] = offset
            offset += max(token.position for token in tokens) + 1 + FIELD_POSITION_GAP
        surfaces.discard("")
        return IndexedDocument(
            doc_id=repository.id,
            repository=repository,
            field_terms=field_terms,
            field_offsets=field_offsets,
            surfaces=frozenset(surfaces),
        )

    def _touch(self) -> None:
        self.version += 1
        INDEX_DOCUMENTS.labels(index=self._state.schema.name).set(len(self._state.documents))


def coerce_repository(document: Repository | Mapping[str, Any]) -> Repository:
    if isinstance(document, Repository):
        return document
    if isinstance(document, Mapping):
        return Repository.from_mapping(document)
    msg = f"Unsupported document type: {type(document).__name__}"
    raise TypeError(msg)


def check_integrity(state: IndexState) -> None:
    """Check that global postings equal the per-field postings summed by document.

    Raises ``IndexCorruptionError`` on the first violation.
    """

    expected: dict[str, dict[str, int]] = {}
    for field_name, sub_index in state.field_index.items():
        for term, postings in sub_index.items():
            if not postings:
                raise IndexCorruptionError(
                    "Empty field posting list", details={"field": field_name, "term": term}
                )
            for posting in postings:
                if posting.doc_id not in state.documents:
                    raise IndexCorruptionError(
                        "Posting references a missing document",
                        details={"field": field_name, "term": term, "doc_id": posting.doc_id},
                    )
                per_doc = expected.setdefault(term, {})
                per_doc[posting.doc_id] = per_doc.get(posting.doc_id, 0) + posting.frequency
    if set(expected) != set(state.global_index):
        raise IndexCorruptionError(
            "Global vocabulary differs from field vocabularies",
            details={"difference": sorted(set(expected) ^ set(state.global_index))[:20]},
        )
    for term, postings in state.global_index.items():
        actual = {posting.doc_id: posting.frequency for posting in postings}
        if actual != expected[term]:
            raise IndexCorruptionError("Global postings disagree with field postings", details={"term": term})
