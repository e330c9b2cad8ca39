"""TF-IDF query execution over the repository index.

Each clause is resolved against the per-field posting lists into a mapping of
document id -> ``ClauseMatch``. Per-field contributions are
``weight_f * tf_f * idf_f`` times a clause multiplier:

==========  ==========================
clause      multiplier
==========  ==========================
term        1.0
field       2.0
phrase      1.5
wildcard    0.8
fuzzy       0.6 * similarity
==========  ==========================

Candidates are the union of positive scoring clauses, restricted by field and
range clauses, minus anything a negated clause matches, then passed through the
structured filters. Raw scores are normalized into [0, 1] relative to the best
candidate and blended with clause coverage, so a document matching every term
outranks one matching a single rare term only when its raw score keeps up.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
import logging
import threading
import time
from typing import Any, Literal, assert_never

from repo_search.config import SearchEngineConfig
from repo_search.domain.model import Repository
from repo_search.domain.search import (
    ExplanationStep,
    RelevanceFactor,
    ResultMetadata,
    SearchExplanation,
    SearchFilters,
    SearchMatch,
    SearchRequest,
    SearchResult,
    SearchStatistics,
    SortField,
    SortOrder,
    Suggestion,
    TextHighlight,
)
from repo_search.errors import IndexCorruptionError
from repo_search.search.index import IndexManager
from repo_search.search.matching import find_fuzzy_matches, find_glob_matches, find_phrase_starts, similarity_ratio
from repo_search.search.query_parser import (
    FieldClause,
    FuzzyClause,
    ParsedQuery,
    PhraseClause,
    QueryClause,
    QueryParser,
    RangeClause,
    TermClause,
    WildcardClause,
    ensure_aware,
)
from repo_search.search.stats import calculate_idf, confidence, normalize_score


logger = logging.getLogger(__name__)

TERM_MULTIPLIER = 1.0
FIELD_MULTIPLIER = 2.0
PHRASE_MULTIPLIER = 1.5
WILDCARD_MULTIPLIER = 0.8
FUZZY_MULTIPLIER = 0.6

MAX_WILDCARD_EXPANSIONS = 50
MAX_FUZZY_EXPANSIONS = 10
MIN_SUGGEST_PREFIX = 2
SUGGEST_CACHE_SIZE = 256

_SCORING_CLAUSES = (TermClause, PhraseClause, FieldClause, WildcardClause, FuzzyClause)
_RESTRICTING_CLAUSES = (FieldClause, RangeClause)

HighlightType = Literal["exact", "fuzzy"]


@dataclass
class ClauseMatch:
    """Score of one clause for one document, with per-field contributions.

    ``terms`` maps a field to the matched terms and their highlight type;
    ``spans`` holds first and last token positions of matched phrases.
    """

    score: float = 0.0
    fields: dict[str, float] = field(default_factory=dict)
    terms: dict[str, dict[str, HighlightType]] = field(default_factory=dict)
    spans: dict[str, list[tuple[int, int]]] = field(default_factory=dict)

    def add(self, field_name: str, contribution: float) -> None:
        self.score += contribution
        self.fields[field_name] = self.fields.get(field_name, 0.0) + contribution

    def mark(self, field_name: str, term: str, kind: HighlightType = "exact") -> None:
        marked = self.terms.setdefault(field_name, {})
        if marked.get(term) != "exact":
            marked[term] = kind

    def merge(self, other: ClauseMatch) -> None:
        for field_name, contribution in other.fields.items():
            self.add(field_name, contribution)
        self.absorb_highlights(other)

    def absorb_highlights(self, other: ClauseMatch) -> None:
        for field_name, terms in other.terms.items():
            for term, kind in terms.items():
                self.mark(field_name, term, kind)
        for field_name, spans in other.spans.items():
            self.spans.setdefault(field_name, []).extend(spans)


ClauseResult = dict[str, ClauseMatch]


@dataclass
class _Candidate:
    doc_id: str
    repository: Repository
    raw: float = 0.0
    matched_clauses: int = 0
    fields: dict[str, float] = field(default_factory=dict)
    highlights: ClauseMatch = field(default_factory=ClauseMatch)
    score: float = 0.0
    coverage: float = 1.0


@dataclass
class _StepInfo:
    results: int = 0
    details: dict[str, Any] = field(default_factory=dict)


class StepRecorder:
    """Collects timed pipeline steps; disabled recorders only time the total."""

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self.steps: list[ExplanationStep] = []

    @contextmanager
    def step(self, name: str, description: str) -> Iterator[_StepInfo]:
        info = _StepInfo()
        start = time.perf_counter()
        yield info
        if self.enabled:
            self.steps.append(
                ExplanationStep(
                    step=name,
                    description=description,
                    elapsed_ms=(time.perf_counter() - start) * 1000.0,
                    results=info.results,
                    details=info.details,
                )
            )


def describe_clause(clause: QueryClause) -> str:
    prefix = "-" if clause.negated else ""
    if isinstance(clause, TermClause):
        return f"{prefix}term:{clause.term}"
    if isinstance(clause, PhraseClause):
        return f'{prefix}phrase:"{" ".join(clause.terms)}"'
    if isinstance(clause, FieldClause):
        return f"{prefix}field:{clause.field}={clause.value}"
    if isinstance(clause, RangeClause):
        low = "*" if clause.lower is None else str(clause.lower)
        high = "*" if clause.upper is None else str(clause.upper)
        return f"{prefix}range:{clause.field}={low}..{high}"
    if isinstance(clause, WildcardClause):
        return f"{prefix}wildcard:{clause.pattern}"
    if isinstance(clause, FuzzyClause):
        return f"{prefix}fuzzy:{clause.term}~{clause.max_edits}"
    assert_never(clause)


def _note(found: dict[tuple[int, int], HighlightType], start: int, end: int, kind: HighlightType) -> None:
    if found.get((start, end)) != "exact":
        found[(start, end)] = kind


def passes_filters(repository: Repository, filters: SearchFilters) -> bool:
    """Apply structured filters exactly as given; ``None`` disables a filter."""

    if filters.language is not None and repository.language != filters.language:
        return False
    if filters.topic is not None and filters.topic.casefold() not in {t.casefold() for t in repository.topics}:
        return False
    if filters.min_stars is not None and repository.stargazers_count < filters.min_stars:
        return False
    if filters.max_stars is not None and repository.stargazers_count > filters.max_stars:
        return False
    if filters.show_archived is False and repository.archived:
        return False
    if filters.show_forks is False and repository.fork:
        return False
    if filters.date_range is not None:
        value: datetime | None = getattr(repository, f"{filters.date_range.field}_at", None)
        if value is None:
            return False
        value = ensure_aware(value)
        if filters.date_range.start is not None and value < ensure_aware(filters.date_range.start):
            return False
        if filters.date_range.end is not None and value > ensure_aware(filters.date_range.end):
            return False
    return True


class QueryEngine:
    """Executes parsed queries, suggestions and explanations against an index."""

    def __init__(self, index: IndexManager, config: SearchEngineConfig | None = None) -> None:
        self.index = index
        self.config = config or index.config
        self._lock = threading.Lock()
        self._suggest_cache: OrderedDict[tuple[str, int], list[Suggestion]] = OrderedDict()
        self._cache_version = index.version
        self.total_searches = 0
        self.last_search_time_ms = 0.0

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def parse(self, request: SearchRequest) -> ParsedQuery:
        options = request.options
        return QueryParser(self.index.analyzer, self.index.schema).parse(
            request.text,
            filters=options.filters,
            sort_by=options.sort_by,
            sort_order=options.sort_order,
            limit=self.config.search.clamp_limit(options.limit),
            offset=max(0, options.offset),
        )

    def search(self, request: SearchRequest) -> list[SearchResult]:
        results, _ = self._run(request, StepRecorder(enabled=False), record_stats=True)
        return results

    def explain(self, request: SearchRequest) -> SearchExplanation:
        """Run the search pipeline with a step recorder; ranking is identical to ``search``."""

        start = time.perf_counter()
        recorder = StepRecorder()
        results, _ = self._run(request, recorder, record_stats=False)
        return SearchExplanation(
            query=request.text,
            strategy="keyword_tfidf",
            steps=recorder.steps,
            total_ms=(time.perf_counter() - start) * 1000.0,
            ranked_ids=[result.document_id for result in results],
        )

    def suggest(self, prefix: str, limit: int = 5) -> list[Suggestion]:
        """Complete ``prefix`` from indexed words, then fill with spelling corrections."""

        needle = (prefix or "").strip().lower()
        if len(needle) < MIN_SUGGEST_PREFIX or limit <= 0:
            return []
        key = (needle, limit)
        with self._lock:
            self._check_cache_version()
            cached = self._suggest_cache.get(key)
            if cached is not None:
                self._suggest_cache.move_to_end(key)
                return list(cached)

        suggestions = self._build_suggestions(needle, limit)

        with self._lock:
            self._check_cache_version()
            self._suggest_cache[key] = suggestions
            while len(self._suggest_cache) > SUGGEST_CACHE_SIZE:
                self._suggest_cache.popitem(last=False)
        return list(suggestions)

    def invalidate_caches(self) -> None:
        with self._lock:
            self._suggest_cache.clear()
            self._cache_version = self.index.version

    def get_statistics(self) -> SearchStatistics:
        with self._lock:
            self._check_cache_version()
            cache_size = len(self._suggest_cache)
            total_searches = self.total_searches
            last_time = self.last_search_time_ms
        return SearchStatistics(
            total_documents=self.index.total_documents,
            total_terms=len(self.index.get_all_terms()),
            index_size=self.index.estimated_size(),
            search_time_ms=last_time,
            total_searches=total_searches,
            cache_size=cache_size,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _run(
        self,
        request: SearchRequest,
        recorder: StepRecorder,
        *,
        record_stats: bool,
    ) -> tuple[list[SearchResult], int]:
        start = time.perf_counter()

        with recorder.step("query_parsing", "Parse query text into typed clauses") as info:
            parsed = self.parse(request)
            info.results = len(parsed.clauses)
            info.details = {"clauses": [describe_clause(clause) for clause in parsed.clauses]}

        with recorder.step("term_lookup", "Resolve each clause against the inverted index") as info:
            matches = [(clause, self._execute_clause(clause)) for clause in parsed.clauses]
            info.results = sum(len(result) for _, result in matches)
            info.details = {"clause_matches": {describe_clause(clause): len(result) for clause, result in matches}}

        with recorder.step("candidate_scoring", "Combine clause scores into candidates") as info:
            candidates = self._combine(parsed, matches)
            info.results = len(candidates)

        with recorder.step("filtering", "Apply structured filters") as info:
            if not parsed.filters.is_empty():
                candidates = [c for c in candidates if passes_filters(c.repository, parsed.filters)]
            info.results = len(candidates)
            info.details = {"filters": parsed.filters.model_dump(mode="json", exclude_none=True)}

        with recorder.step("ranking", "Normalize scores and sort") as info:
            ranked = self._rank(candidates, parsed)
            info.results = len(ranked)
            info.details = {"sort_by": parsed.sort_by.value, "sort_order": parsed.sort_order.value}

        with recorder.step("pagination", "Slice the requested page") as info:
            page = ranked[parsed.offset : parsed.offset + parsed.limit]
            info.results = len(page)
            info.details = {"limit": parsed.limit, "offset": parsed.offset, "total": len(ranked)}

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        results = [self._to_result(candidate, elapsed_ms) for candidate in page]

        if elapsed_ms > self.config.search.timeout_ms:
            logger.warning(
                "Search for %r took %.1fms (budget %dms)", request.text, elapsed_ms, self.config.search.timeout_ms
            )
        if record_stats:
            with self._lock:
                self.total_searches += 1
                self.last_search_time_ms = elapsed_ms
        logger.debug("Search %r: %d candidates, %d returned in %.2fms", request.text, len(ranked), len(results), elapsed_ms)
        return results, len(ranked)

    def _execute_clause(self, clause: QueryClause) -> ClauseResult:
        if isinstance(clause, TermClause):
            return self._score_term(clause.term, self.index.schema.text_field_names, TERM_MULTIPLIER)
        if isinstance(clause, PhraseClause):
            return self._execute_phrase(clause)
        if isinstance(clause, FieldClause):
            return self._execute_field(clause)
        if isinstance(clause, RangeClause):
            return self._execute_range(clause)
        if isinstance(clause, WildcardClause):
            return self._execute_wildcard(clause)
        if isinstance(clause, FuzzyClause):
            return self._execute_fuzzy(clause)
        assert_never(clause)

    def _score_term(
        self, term: str, fields: list[str], multiplier: float, kind: HighlightType = "exact"
    ) -> ClauseResult:
        state = self.index.state
        total_documents = len(state.documents)
        result: ClauseResult = {}
        for field_name in fields:
            postings = state.field_index.get(field_name, {}).get(term)
            if not postings:
                continue
            idf = calculate_idf(postings.document_frequency, total_documents)
            weight = state.schema.get_boost(field_name)
            for posting in postings:
                contribution = weight * posting.frequency * idf * multiplier
                match = result.setdefault(posting.doc_id, ClauseMatch())
                match.add(field_name, contribution)
                match.mark(field_name, term, kind)
        return result

    def _execute_phrase(self, clause: PhraseClause) -> ClauseResult:
        state = self.index.state
        total_documents = len(state.documents)
        span = clause.offsets[-1] - clause.offsets[0]
        result: ClauseResult = {}
        for field_name in state.schema.text_field_names:
            sub_index = state.field_index.get(field_name, {})
            posting_lists = [sub_index.get(term) for term in clause.terms]
            if any(postings is None for postings in posting_lists):
                continue
            shared = set(posting_lists[0].doc_ids())
            for postings in posting_lists[1:]:
                shared &= set(postings.doc_ids())
            if not shared:
                continue
            idf_sum = sum(calculate_idf(postings.document_frequency, total_documents) for postings in posting_lists)
            weight = state.schema.get_boost(field_name)
            for doc_id in shared:
                positions = [list(postings.postings[doc_id].positions) for postings in posting_lists]
                starts = find_phrase_starts(clause.offsets, positions)
                if starts:
                    contribution = weight * len(starts) * idf_sum * PHRASE_MULTIPLIER
                    match = result.setdefault(doc_id, ClauseMatch())
                    match.add(field_name, contribution)
                    match.spans.setdefault(field_name, []).extend((start, start + span) for start in starts)
        return result

    def _execute_field(self, clause: FieldClause) -> ClauseResult:
        if clause.terms:
            per_term = [self._score_term(term, [clause.field], FIELD_MULTIPLIER) for term in clause.terms]
            shared = set(per_term[0])
            for term_result in per_term[1:]:
                shared &= set(term_result)
            result: ClauseResult = {}
            for doc_id in shared:
                match = ClauseMatch()
                for term_result in per_term:
                    match.merge(term_result[doc_id])
                result[doc_id] = match
            return result

        # The value analyzed to nothing (``language:c``); compare normalized words.
        needle = self.index.analyzer.normalize(clause.value)
        if not needle:
            return {}
        weight = self.index.schema.get_boost(clause.field)
        result = {}
        for doc_id, indexed in self.index.state.documents.items():
            text = indexed.repository.searchable_fields().get(clause.field, "")
            words = {token.normalized for token in self.index.analyzer.tokenize(text)}
            if needle in words or self.index.analyzer.normalize(text) == needle:
                match = ClauseMatch()
                match.add(clause.field, weight * FIELD_MULTIPLIER)
                match.mark(clause.field, needle)
                result[doc_id] = match
        return result

    def _execute_range(self, clause: RangeClause) -> ClauseResult:
        schema_field = self.index.schema.range_fields.get(clause.field)
        if schema_field is None:
            return {}
        return {
            doc_id: ClauseMatch()
            for doc_id, indexed in self.index.state.documents.items()
            if clause.contains(schema_field.value_of(indexed.repository))
        }

    def _execute_wildcard(self, clause: WildcardClause) -> ClauseResult:
        surfaces = find_glob_matches(clause.pattern, self.index.get_vocabulary())[:MAX_WILDCARD_EXPANSIONS]
        stems = dict.fromkeys(self.index.resolve_term(surface) for surface in surfaces)
        result: ClauseResult = {}
        fields = self.index.schema.text_field_names
        for stem in stems:
            for doc_id, match in self._score_term(stem, fields, WILDCARD_MULTIPLIER).items():
                result.setdefault(doc_id, ClauseMatch()).merge(match)
        return result

    def _execute_fuzzy(self, clause: FuzzyClause) -> ClauseResult:
        matches = find_fuzzy_matches(clause.term, self.index.get_vocabulary(), clause.max_edits)
        best: dict[str, float] = {}
        for surface, distance in matches[:MAX_FUZZY_EXPANSIONS]:
            similarity = 1.0 - distance / max(len(clause.term), len(surface), 1)
            stem = self.index.resolve_term(surface)
            best[stem] = max(best.get(stem, 0.0), similarity)
        result: ClauseResult = {}
        fields = self.index.schema.text_field_names
        for stem, similarity in best.items():
            multiplier = FUZZY_MULTIPLIER * max(similarity, 0.1)
            kind: HighlightType = "exact" if similarity >= 1.0 else "fuzzy"
            for doc_id, match in self._score_term(stem, fields, multiplier, kind).items():
                result.setdefault(doc_id, ClauseMatch()).merge(match)
        return result

    def _combine(self, parsed: ParsedQuery, matches: list[tuple[QueryClause, ClauseResult]]) -> list[_Candidate]:
        scoring = [(c, r) for c, r in matches if not c.negated and isinstance(c, _SCORING_CLAUSES)]
        restricting = [(c, r) for c, r in matches if not c.negated and isinstance(c, _RESTRICTING_CLAUSES)]
        excluding = [(c, r) for c, r in matches if c.negated]

        if scoring:
            pool: set[str] = set()
            for _, result in scoring:
                pool.update(result)
        elif restricting or excluding or not parsed.filters.is_empty():
            pool = set(self.index.document_ids())
        else:
            pool = set()
        for _, result in restricting:
            pool &= result.keys()
        for _, result in excluding:
            pool -= result.keys()

        documents = self.index.state.documents
        missing = set().union(*(result.keys() for _, result in matches)) - documents.keys()
        if missing:
            raise IndexCorruptionError(
                "Postings reference documents missing from the index",
                details={"doc_ids": sorted(missing)[:20]},
            )

        candidates: list[_Candidate] = []
        for doc_id, indexed in documents.items():
            if doc_id not in pool:
                continue
            candidate = _Candidate(doc_id=doc_id, repository=indexed.repository)
            for _, result in scoring:
                match = result.get(doc_id)
                if match is None:
                    continue
                candidate.raw += match.score
                candidate.matched_clauses += 1
                for field_name, contribution in match.fields.items():
                    candidate.fields[field_name] = candidate.fields.get(field_name, 0.0) + contribution
                candidate.highlights.absorb_highlights(match)
            candidate.coverage = candidate.matched_clauses / len(scoring) if scoring else 1.0
            candidates.append(candidate)
        return candidates

    def _rank(self, candidates: list[_Candidate], parsed: ParsedQuery) -> list[_Candidate]:
        max_raw = max((candidate.raw for candidate in candidates), default=0.0)
        for candidate in candidates:
            candidate.score = normalize_score(candidate.raw, max_raw, candidate.coverage)

        reverse = parsed.sort_order is SortOrder.DESC
        sort_by = parsed.sort_by
        # sorted() is stable, also with reverse=True, so ties keep insertion order.
        if sort_by is SortField.RELEVANCE:
            return sorted(candidates, key=lambda c: c.score, reverse=reverse)
        if sort_by is SortField.STARS:
            return sorted(candidates, key=lambda c: c.repository.stargazers_count, reverse=reverse)
        if sort_by is SortField.FORKS:
            return sorted(candidates, key=lambda c: c.repository.forks_count, reverse=reverse)
        if sort_by is SortField.NAME:
            return sorted(candidates, key=lambda c: c.repository.name.casefold(), reverse=reverse)
        if sort_by is SortField.UPDATED or sort_by is SortField.CREATED:
            attribute = "updated_at" if sort_by is SortField.UPDATED else "created_at"
            dated = [c for c in candidates if getattr(c.repository, attribute) is not None]
            undated = [c for c in candidates if getattr(c.repository, attribute) is None]
            dated = sorted(dated, key=lambda c: ensure_aware(getattr(c.repository, attribute)), reverse=reverse)
            return dated + undated
        assert_never(sort_by)

    def _to_result(self, candidate: _Candidate, elapsed_ms: float) -> SearchResult:
        schema = self.index.schema
        matched_fields = [name for name in schema.text_field_names if name in candidate.fields]
        factors: list[RelevanceFactor] = []
        for name in matched_fields:
            share = candidate.fields[name] / candidate.raw if candidate.raw > 0 else 1.0 / len(matched_fields)
            factors.append(
                RelevanceFactor(
                    factor=f"{name}_match",
                    weight=schema.get_boost(name),
                    contribution=share,
                    description=f"Query matched the repository {name}",
                )
            )
        factors.append(
            RelevanceFactor(
                factor="clause_coverage",
                weight=0.2,
                contribution=candidate.coverage,
                description="Share of query clauses the repository matched",
            )
        )
        return SearchResult(
            document_id=candidate.doc_id,
            repository=candidate.repository,
            score=candidate.score,
            matched_fields=matched_fields,
            matches=self._build_matches(candidate),
            metadata=ResultMetadata(
                matched_fields=matched_fields,
                relevance_factors=factors,
                search_time_ms=elapsed_ms,
                confidence=confidence(candidate.score, len(matched_fields)),
            ),
        )

    def _build_matches(self, candidate: _Candidate) -> list[SearchMatch]:
        """Map matched terms and phrase spans back to character offsets in each field."""

        analyzer = self.index.analyzer
        texts = candidate.repository.searchable_fields()
        marks = candidate.highlights
        matches: list[SearchMatch] = []
        for field_name in self.index.schema.text_field_names:
            terms = marks.terms.get(field_name, {})
            spans = marks.spans.get(field_name, [])
            text = texts.get(field_name, "")
            if not text or not (terms or spans):
                continue

            found: dict[tuple[int, int], HighlightType] = {}
            raw_tokens = analyzer.tokenize(text, field_name)
            if spans:
                by_position = {token.position: token for token in raw_tokens}
                for first, last in spans:
                    if first in by_position and last in by_position:
                        _note(found, by_position[first].start_char, by_position[last].end_char, "exact")
            if terms:
                for token in analyzer.analyze(text, field_name):
                    if token.normalized in terms:
                        _note(found, token.start_char, token.end_char, terms[token.normalized])
                # Words dropped by analysis (``language:c``) match on their normalized form.
                for token in raw_tokens:
                    if token.normalized in terms:
                        _note(found, token.start_char, token.end_char, terms[token.normalized])
            if not found:
                continue

            highlights = [
                TextHighlight(start=start, end=end, text=text[start:end], type=kind)
                for (start, end), kind in sorted(found.items())
            ]
            share = candidate.fields.get(field_name, 0.0) / candidate.raw if candidate.raw > 0 else 0.0
            matches.append(SearchMatch(field=field_name, value=text, highlights=highlights, score=share))
        return matches

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------
    def _check_cache_version(self) -> None:
        if self._cache_version != self.index.version:
            self._suggest_cache.clear()
            self._cache_version = self.index.version

    def _build_suggestions(self, needle: str, limit: int) -> list[Suggestion]:
        counts = self.index.state.surface_counts
        vocabulary = list(counts)
        completions = self.index.analyzer.generate_suggestions(needle, vocabulary, limit=len(vocabulary))
        max_count = max((counts[term] for term in completions), default=1)
        scored = [
            Suggestion(
                text=term,
                score=0.5 * len(needle) / len(term) + 0.5 * counts[term] / max_count,
                type="completion",
            )
            for term in completions
        ]
        scored.sort(key=lambda suggestion: suggestion.score, reverse=True)
        suggestions = scored[:limit]

        if len(suggestions) < limit:
            seen = {suggestion.text for suggestion in suggestions}
            threshold = self.config.search.fuzzy_threshold
            for term, _distance in find_fuzzy_matches(needle, vocabulary, max_distance=2):
                if term in seen:
                    continue
                ratio = similarity_ratio(needle, term)
                if ratio < threshold:
                    continue
                suggestions.append(Suggestion(text=term, score=0.8 * ratio, type="correction"))
                seen.add(term)
                if len(suggestions) >= limit:
                    break
        return suggestions
