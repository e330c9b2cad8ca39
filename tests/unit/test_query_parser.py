"""Unit tests for query syntax parsing."""

from datetime import datetime, timezone

import pytest

from repo_search.domain.search import SearchFilters, SortField, SortOrder
from repo_search.search.analyzers import TextAnalyzer
from repo_search.search.query_parser import (
    FieldClause,
    FuzzyClause,
    PhraseClause,
    QueryParser,
    RangeClause,
    TermClause,
    WildcardClause,
    ensure_aware,
    split_query,
)
from repo_search.search.schema import create_repository_schema


@pytest.fixture
def parser() -> QueryParser:
    return QueryParser(TextAnalyzer(), create_repository_schema())


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.unit
class TestTerms:
    def test_bare_terms_are_analyzed(self, parser):
        parsed = parser.parse("React hooks")
        assert parsed.clauses == (TermClause("react", "React"), TermClause("hook", "hooks"))

    def test_stop_words_dropped(self, parser):
        assert parser.parse("the react").terms == [TermClause("react", "react")]

    def test_duplicates_collapse(self, parser):
        assert len(parser.parse("react React runs running").clauses) == 2

    def test_connectors_ignored(self, parser):
        parsed = parser.parse("react AND vue OR angular")
        assert [clause.term for clause in parsed.terms] == ["react", "vue", "angular"]
        assert parsed.negated_clauses == []


@pytest.mark.unit
class TestNegation:
    def test_minus_prefix(self, parser):
        parsed = parser.parse("react -legacy")
        assert parsed.negated_clauses == [TermClause("legacy", "legacy", negated=True)]
        assert parsed.positive_clauses == [TermClause("react", "react")]

    def test_not_keyword(self, parser):
        parsed = parser.parse("NOT vue")
        assert parsed.clauses == (TermClause("vue", "vue", negated=True),)

    def test_negated_field(self, parser):
        (clause,) = parser.parse("-owner:facebook").clauses
        assert isinstance(clause, FieldClause)
        assert clause.negated


@pytest.mark.unit
class TestPhrases:
    """Quoted text becomes a positional phrase."""

    def test_phrase(self, parser):
        (clause,) = parser.parse('"state management"').clauses
        assert clause == PhraseClause("state management", ("state", "manage"), (0, 1))

    def test_stop_word_gap_kept(self, parser):
        (clause,) = parser.parse('"state of the art"').clauses
        assert clause.terms == ("state", "art")
        assert clause.offsets == (0, 3)

    def test_single_word_phrase_is_a_term(self, parser):
        assert parser.parse('"react"').clauses == (TermClause("react", "react"),)

    def test_unterminated_quote(self, parser):
        (clause,) = parser.parse('"state management').clauses
        assert isinstance(clause, PhraseClause)

    def test_split_query(self):
        assert split_query('a "b c"  d') == ["a", '"b c"', "d"]


@pytest.mark.unit
class TestFieldClauses:
    def test_field(self, parser):
        (clause,) = parser.parse("owner:facebook").clauses
        assert clause == FieldClause("owner", "facebook", ("facebook",))

    @pytest.mark.parametrize(
        ("query", "field"),
        [("user:facebook", "owner"), ("lang:python", "language"), ("topic:web", "topics"), ("repo:vue", "name")],
    )
    def test_aliases(self, parser, query, field):
        (clause,) = parser.parse(query).clauses
        assert clause.field == field

    def test_empty_value(self, parser):
        assert parser.parse("owner:").is_empty()

    def test_unknown_field_becomes_terms(self, parser):
        assert [clause.term for clause in parser.parse("foo:bar").terms] == ["foo", "bar"]


@pytest.mark.unit
class TestRangeClauses:
    """Numeric and date ranges on schema range fields."""

    def test_greater_than(self, parser):
        (clause,) = parser.parse("stars:>1000").clauses
        assert clause == RangeClause("stars", lower=1000.0, include_lower=False)
        assert clause.contains(1001)
        assert not clause.contains(1000)

    def test_suffixes(self, parser):
        (clause,) = parser.parse("stars:>=1.5k").clauses
        assert clause.lower == 1500.0
        assert clause.include_lower

    def test_less_than_or_equal(self, parser):
        (clause,) = parser.parse("forks:<=10").clauses
        assert clause.upper == 10.0
        assert clause.contains(10)
        assert not clause.contains(11)

    def test_between(self, parser):
        (clause,) = parser.parse("stars:10..50").clauses
        assert (clause.lower, clause.upper) == (10.0, 50.0)
        assert clause.contains(10) and clause.contains(50)

    def test_open_ended(self, parser):
        (clause,) = parser.parse("stars:*..50").clauses
        assert clause.lower is None
        assert clause.contains(0)

    def test_equality(self, parser):
        (clause,) = parser.parse("stars:42").clauses
        assert clause.contains(42)
        assert not clause.contains(43)
        assert not clause.contains(None)

    def test_year(self, parser):
        (clause,) = parser.parse("created:2020").clauses
        assert clause.lower == _utc(2020, 1, 1)
        assert clause.upper == _utc(2021, 1, 1)
        assert clause.contains(_utc(2020, 12, 31, 23, 59))
        assert not clause.contains(_utc(2021, 1, 1))

    def test_after_year(self, parser):
        (clause,) = parser.parse("created:>2020").clauses
        assert clause.lower == _utc(2021, 1, 1)
        assert not clause.contains(_utc(2020, 6, 1))

    def test_before_year(self, parser):
        (clause,) = parser.parse("updated:<2020").clauses
        assert clause.upper == _utc(2020, 1, 1)
        assert not clause.include_upper

    def test_month_range(self, parser):
        (clause,) = parser.parse("created:2020-01..2020-06").clauses
        assert clause.upper == _utc(2020, 7, 1)
        assert clause.contains(_utc(2020, 6, 30))
        assert not clause.contains(_utc(2020, 7, 1))

    def test_naive_dates_are_utc(self, parser):
        (clause,) = parser.parse("created:2020").clauses
        assert clause.contains(datetime(2020, 5, 1))

    def test_unparseable_range_becomes_terms(self, parser):
        parsed = parser.parse("stars:lots")
        assert parsed.range_clauses == []
        assert "lot" in [clause.term for clause in parsed.terms]

    @pytest.mark.parametrize("query", ["stars:nan", "stars:>inf", "forks:<-inf", "stars:1e999"])
    def test_non_finite_numbers_are_not_ranges(self, parser, query):
        assert parser.parse(query).range_clauses == []


@pytest.mark.unit
class TestWildcardAndFuzzy:
    def test_wildcard(self, parser):
        assert parser.parse("Java*").clauses == (WildcardClause("java*"),)

    def test_bare_star_ignored(self, parser):
        assert parser.parse("*").is_empty()

    def test_fuzzy_default_distance(self, parser):
        assert parser.parse("reakt~").clauses == (FuzzyClause("reakt", 2),)

    def test_fuzzy_explicit_distance(self, parser):
        assert parser.parse("reakt~1").clauses == (FuzzyClause("reakt", 1),)

    def test_fuzzy_distance_capped(self, parser):
        assert parser.parse("reakt~9").fuzzy_clauses == [FuzzyClause("reakt", 3)]


@pytest.mark.unit
class TestParsedQuery:
    def test_options_pass_through(self, parser):
        filters = SearchFilters(language="Python")
        parsed = parser.parse(
            "react",
            filters=filters,
            sort_by=SortField.STARS,
            sort_order=SortOrder.ASC,
            limit=5,
            offset=10,
        )
        assert parsed.filters == filters
        assert parsed.sort_by is SortField.STARS
        assert parsed.sort_order is SortOrder.ASC
        assert (parsed.limit, parsed.offset) == (5, 10)
        assert parsed.raw_text == "react"

    def test_mixed_query(self, parser):
        parsed = parser.parse('react "user interfaces" owner:facebook stars:>10 java* reakt~1 -vue')
        assert len(parsed.terms) == 2
        assert len(parsed.phrases) == 1
        assert len(parsed.field_clauses) == 1
        assert len(parsed.range_clauses) == 1
        assert len(parsed.wildcard_clauses) == 1
        assert len(parsed.fuzzy_clauses) == 1


def test_ensure_aware() -> None:
    assert ensure_aware(datetime(2020, 1, 1)).tzinfo is timezone.utc
    aware = _utc(2020, 1, 1)
    assert ensure_aware(aware) is aware
