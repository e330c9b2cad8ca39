"""Query syntax parsing into a closed set of clause types.

Supported syntax inside a keyword query::

    react hooks               bare terms (ranked, not required)
    "state management"        phrase (positional adjacency)
    owner:facebook            field clause (restricts to the field)
    stars:>1000 forks:10..50  range clauses on numeric / date fields
    java*  re?ct              wildcard over indexed words
    reakt~1  reakt~           fuzzy term (default 2 edits, at most 3)
    -legacy  NOT legacy       negation of the following clause

``AND``/``OR`` connectors are accepted and ignored: ranking already favours
documents matching more clauses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
import math
import re

from repo_search.domain.search import SearchFilters, SortField, SortOrder
from repo_search.search.analyzers import TextAnalyzer, normalize_text
from repo_search.search.schema import DateField, Schema


logger = logging.getLogger(__name__)

DEFAULT_FUZZY_DISTANCE = 2
MAX_FUZZY_DISTANCE = 3

FIELD_ALIASES = {
    "user": "owner",
    "org": "owner",
    "author": "owner",
    "topic": "topics",
    "tag": "topics",
    "lang": "language",
    "desc": "description",
    "repo": "name",
    "stargazers": "stars",
    "created_at": "created",
    "updated_at": "updated",
    "pushed_at": "pushed",
}

_CONNECTORS = frozenset({"AND", "OR", "&&", "||"})
_NEGATION = frozenset({"NOT", "!"})
_FUZZY_PATTERN = re.compile(r"^(?P<term>[^~]+)~(?P<distance>\d*)$")
_COMPARISON_PATTERN = re.compile(r"^(?P<op>>=|<=|>|<|=)?(?P<value>[^.<>=][^<>=]*)$")
_WILDCARD_CLEAN = re.compile(r"[^\w*?]+", re.UNICODE)


@dataclass(frozen=True)
class TermClause:
    term: str
    text: str = field(default="", compare=False)
    negated: bool = False


@dataclass(frozen=True)
class PhraseClause:
    """Terms that must appear at the given relative ``offsets`` in one field."""

    text: str
    terms: tuple[str, ...]
    offsets: tuple[int, ...]
    negated: bool = False


@dataclass(frozen=True)
class FieldClause:
    field: str
    value: str
    terms: tuple[str, ...] = ()
    negated: bool = False


@dataclass(frozen=True)
class RangeClause:
    """Bounds on a numeric or date field; ``None`` leaves a side open."""

    field: str
    lower: float | datetime | None = None
    upper: float | datetime | None = None
    include_lower: bool = True
    include_upper: bool = True
    negated: bool = False

    def contains(self, value: float | datetime | None) -> bool:
        if value is None:
            return False
        if isinstance(value, datetime):
            value = ensure_aware(value)
        if self.lower is not None:
            if value < self.lower or (value == self.lower and not self.include_lower):
                return False
        if self.upper is not None:
            if value > self.upper or (value == self.upper and not self.include_upper):
                return False
        return True


@dataclass(frozen=True)
class WildcardClause:
    pattern: str
    negated: bool = False


@dataclass(frozen=True)
class FuzzyClause:
    term: str
    max_edits: int = DEFAULT_FUZZY_DISTANCE
    negated: bool = False


QueryClause = TermClause | PhraseClause | FieldClause | RangeClause | WildcardClause | FuzzyClause


@dataclass(frozen=True)
class ParsedQuery:
    raw_text: str
    clauses: tuple[QueryClause, ...] = ()
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort_by: SortField = SortField.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC
    limit: int = 20
    offset: int = 0

    def _of(self, kind: type) -> list:
        return [clause for clause in self.clauses if isinstance(clause, kind)]

    @property
    def terms(self) -> list[TermClause]:
        return self._of(TermClause)

    @property
    def phrases(self) -> list[PhraseClause]:
        return self._of(PhraseClause)

    @property
    def field_clauses(self) -> list[FieldClause]:
        return self._of(FieldClause)

    @property
    def range_clauses(self) -> list[RangeClause]:
        return self._of(RangeClause)

    @property
    def wildcard_clauses(self) -> list[WildcardClause]:
        return self._of(WildcardClause)

    @property
    def fuzzy_clauses(self) -> list[FuzzyClause]:
        return self._of(FuzzyClause)

    @property
    def positive_clauses(self) -> list[QueryClause]:
        return [clause for clause in self.clauses if not clause.negated]

    @property
    def negated_clauses(self) -> list[QueryClause]:
        return [clause for clause in self.clauses if clause.negated]

    def is_empty(self) -> bool:
        return not self.clauses


def ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with API timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def split_query(text: str) -> list[str]:
    """Split on whitespace outside double quotes; quotes stay in the pieces.

    An unterminated quote runs to the end of the text.
    """

    pieces: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in text:
        if char == '"':
            current.append(char)
            in_quotes = not in_quotes
        elif char.isspace() and not in_quotes:
            if current:
                pieces.append("".join(current))
                current = []
        else:
            current.append(char)
    if current:
        piece = "".join(current)
        if in_quotes:
            piece += '"'
        pieces.append(piece)
    return pieces


class QueryParser:
    """Turns query text into a ``ParsedQuery`` using the index analyzer."""

    def __init__(self, analyzer: TextAnalyzer, schema: Schema) -> None:
        self.analyzer = analyzer
        self.schema = schema
        self._text_fields = set(schema.text_field_names)
        self._range_fields = schema.range_fields

    def parse(
        self,
        text: str,
        *,
        filters: SearchFilters | None = None,
        sort_by: SortField = SortField.RELEVANCE,
        sort_order: SortOrder = SortOrder.DESC,
        limit: int = 20,
        offset: int = 0,
    ) -> ParsedQuery:
        clauses: list[QueryClause] = []
        negate_next = False
        for piece in split_query(text):
            if piece in _CONNECTORS:
                continue
            if piece in _NEGATION:
                negate_next = True
                continue
            negated = negate_next
            negate_next = False
            if piece.startswith("-") and len(piece) > 1:
                negated = True
                piece = piece[1:]
            for clause in self._parse_piece(piece, negated):
                if clause not in clauses:
                    clauses.append(clause)
        parsed = ParsedQuery(
            raw_text=text,
            clauses=tuple(clauses),
            filters=filters or SearchFilters(),
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
        )
        logger.debug("Parsed %r into %d clauses", text, len(parsed.clauses))
        return parsed

    def _parse_piece(self, piece: str, negated: bool) -> list[QueryClause]:
        if piece.startswith('"'):
            return self._phrase(piece.strip('"'), negated)

        if ":" in piece and not piece.startswith(":"):
            name, _, value = piece.partition(":")
            field_name = FIELD_ALIASES.get(name.lower(), name.lower())
            value = value.strip('"')
            if field_name in self._range_fields:
                clause = self._range(field_name, value, negated)
                if clause is not None:
                    return [clause]
                logger.debug("Unparseable range %r; treating as terms", piece)
            elif field_name in self._text_fields:
                if not value:
                    return []
                return [FieldClause(field_name, value, tuple(self.analyzer.analyze_terms(value)), negated)]
            return self._terms(piece, negated)

        if "*" in piece or "?" in piece:
            pattern = _WILDCARD_CLEAN.sub("", piece.lower())
            if not pattern.strip("*?"):
                return []
            return [WildcardClause(pattern, negated)]

        if "~" in piece:
            match = _FUZZY_PATTERN.match(piece)
            if match is not None:
                term = normalize_text(match.group("term"))
                if not term:
                    return []
                distance = int(match.group("distance")) if match.group("distance") else DEFAULT_FUZZY_DISTANCE
                return [FuzzyClause(term, max(0, min(distance, MAX_FUZZY_DISTANCE)), negated)]

        return self._terms(piece, negated)

    def _terms(self, text: str, negated: bool) -> list[QueryClause]:
        return [TermClause(term, text, negated) for term in self.analyzer.analyze_terms(text)]

    def _phrase(self, text: str, negated: bool) -> list[QueryClause]:
        tokens = self.analyzer.analyze(text)
        if not tokens:
            return []
        # Compound parts share their compound's position; keep one term per position.
        by_position: dict[int, str] = {}
        for token in tokens:
            by_position.setdefault(token.position, token.normalized)
        if len(by_position) == 1:
            return self._terms(text, negated)
        positions = sorted(by_position)
        first = positions[0]
        return [
            PhraseClause(
                text=text,
                terms=tuple(by_position[position] for position in positions),
                offsets=tuple(position - first for position in positions),
                negated=negated,
            )
        ]

    def _range(self, field_name: str, value: str, negated: bool) -> RangeClause | None:
        is_date = isinstance(self._range_fields[field_name], DateField)
        parse = _parse_date_bound if is_date else _parse_number

        if ".." in value:
            low_text, _, high_text = value.partition("..")
            low = None if low_text in ("", "*") else parse(low_text, False)
            high = None if high_text in ("", "*") else parse(high_text, True)
            if (low_text not in ("", "*") and low is None) or (high_text not in ("", "*") and high is None):
                return None
            if low is None and high is None:
                return None
            # Date upper bounds are exclusive starts of the following period.
            return RangeClause(field_name, low, high, True, not is_date, negated)

        match = _COMPARISON_PATTERN.match(value)
        if match is None:
            return None
        op = match.group("op") or "="
        raw = match.group("value")
        if op == "=":
            if is_date:
                start = _parse_date_bound(raw, False)
                end = _parse_date_bound(raw, True)
                if start is None or end is None:
                    return None
                return RangeClause(field_name, start, end, True, start == end, negated)
            number = _parse_number(raw, False)
            if number is None:
                return None
            return RangeClause(field_name, number, number, True, True, negated)

        if op in (">", ">="):
            # For dates ">2020" means after the whole of 2020.
            bound = parse(raw, is_date and op == ">")
            if bound is None:
                return None
            include = op == ">=" or is_date
            return RangeClause(field_name, lower=bound, include_lower=include, negated=negated)

        bound = parse(raw, is_date and op == "<=")
        if bound is None:
            return None
        include = op == "<=" and not is_date
        return RangeClause(field_name, upper=bound, include_upper=include, negated=negated)


def _parse_number(text: str, _upper: bool) -> float | None:
    cleaned = text.strip().lower().replace(",", "").replace("_", "")
    multiplier = 1.0
    if cleaned.endswith("k"):
        multiplier, cleaned = 1_000.0, cleaned[:-1]
    elif cleaned.endswith("m"):
        multiplier, cleaned = 1_000_000.0, cleaned[:-1]
    try:
        value = float(cleaned) * multiplier
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _parse_date_bound(text: str, upper: bool) -> datetime | None:
    """Parse ``YYYY``, ``YYYY-MM`` or ISO dates.

    With ``upper`` the start of the following period is returned, to be used
    as an exclusive upper bound.
    """

    cleaned = text.strip()
    try:
        if re.fullmatch(r"\d{4}", cleaned):
            year = int(cleaned)
            return datetime(year + 1 if upper else year, 1, 1, tzinfo=timezone.utc)
        if re.fullmatch(r"\d{4}-\d{2}", cleaned):
            year, month = (int(part) for part in cleaned.split("-"))
            if upper:
                year, month = (year + 1, 1) if month == 12 else (year, month + 1)
            return datetime(year, month, 1, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(cleaned)
    except ValueError:
        return None
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", cleaned) and upper:
        parsed += timedelta(days=1)
    return ensure_aware(parsed)
