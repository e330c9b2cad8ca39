"""Text analysis for the repository search stack.

Follows a composable tokenizer/filter design: a tokenizer produces ``Token``
objects, filters transform or drop them, and ``TextAnalyzer`` wires the default
pipeline used both for indexing and for query analysis so the two always agree
on what a term is.

Token positions are assigned by the tokenizer and never renumbered by filters,
so positional gaps left by removed stop words survive into the postings.
"""

from __future__ import annotations

from collections import Counter, OrderedDict
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, replace
from enum import Enum
import math
import re
from typing import Any, Protocol

from repo_search.search.matching import levenshtein_distance


class TokenType(str, Enum):
    WORD = "word"
    NUMBER = "number"
    SYMBOL = "symbol"


@dataclass
class Token:
    """A unit of text emitted by the tokenizer.

    ``text`` is the original substring, ``normalized`` its lowercased (and,
    after the stem filter, stemmed) form. ``position`` is the ordinal of the
    token in its source field.
    """

    text: str
    normalized: str
    type: TokenType
    position: int
    field: str = "content"
    start_char: int = 0
    end_char: int = 0

    def copy_with(self, **updates: Any) -> Token:
        return replace(self, **updates)


@dataclass(frozen=True)
class Keyword:
    text: str
    score: float


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str, field: str = "content") -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


# Word runs may contain ".", "-" or "_" between alphanumerics (React.js, vue-router).
_TOKEN_PATTERN = re.compile(r"[^\W_]+(?:[.\-_][^\W_]+)*|\S", re.UNICODE)
_JOINER_PATTERN = re.compile(r"(?<=[^\W_])[.\-_](?=[^\W_])", re.UNICODE)
_NON_WORD_PATTERN = re.compile(r"[\W_]+", re.UNICODE)


def normalize_text(text: str) -> str:
    """Lowercase ``text`` and strip punctuation so ``React.js`` becomes ``reactjs``."""

    if not text:
        return ""
    joined = _JOINER_PATTERN.sub("", text)
    return _NON_WORD_PATTERN.sub("", joined.lower())


def classify_token(normalized: str) -> TokenType:
    if not normalized:
        return TokenType.SYMBOL
    if normalized.isdigit():
        return TokenType.NUMBER
    return TokenType.WORD


class RegexTokenizer:
    """Regex tokenizer yielding word, number and symbol tokens."""

    def __init__(self, pattern: re.Pattern[str] = _TOKEN_PATTERN) -> None:
        self.pattern = pattern

    def __call__(self, text: str, field: str = "content") -> Iterator[Token]:
        if not text:
            return
        for position, match in enumerate(self.pattern.finditer(text)):
            raw = match.group(0)
            normalized = normalize_text(raw)
            yield Token(
                text=raw,
                normalized=normalized,
                type=classify_token(normalized),
                position=position,
                field=field,
                start_char=match.start(),
                end_char=match.end(),
            )


DEFAULT_STOPWORDS = frozenset(
    {
        "a",
        "about",
        "after",
        "all",
        "also",
        "am",
        "an",
        "and",
        "any",
        "are",
        "as",
        "at",
        "be",
        "been",
        "being",
        "but",
        "by",
        "can",
        "could",
        "did",
        "do",
        "does",
        "each",
        "for",
        "from",
        "had",
        "has",
        "have",
        "he",
        "her",
        "him",
        "his",
        "how",
        "if",
        "in",
        "into",
        "is",
        "it",
        "its",
        "may",
        "my",
        "no",
        "not",
        "of",
        "on",
        "or",
        "our",
        "she",
        "so",
        "some",
        "such",
        "than",
        "that",
        "the",
        "their",
        "them",
        "then",
        "there",
        "these",
        "they",
        "this",
        "those",
        "to",
        "up",
        "was",
        "we",
        "were",
        "what",
        "when",
        "which",
        "who",
        "will",
        "with",
        "would",
        "you",
        "your",
    }
)


class StopFilter:
    """Drops stop words, symbols and single-character words."""

    def __init__(self, stopwords: Iterable[str] | None = None, *, min_length: int = 2) -> None:
        vocab = stopwords if stopwords is not None else DEFAULT_STOPWORDS
        self.stopwords = frozenset(word.lower() for word in vocab)
        self.min_length = min_length

    def keep(self, token: Token) -> bool:
        if token.type is TokenType.SYMBOL:
            return False
        if token.type is TokenType.NUMBER:
            return True
        return len(token.normalized) >= self.min_length and token.normalized not in self.stopwords

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if self.keep(token):
                yield token


class CompoundSplitFilter:
    """Emits the parts of joined words (``vue-router``) at the compound's position.

    The compound itself is kept, so ``vuerouter`` and ``router`` both match.
    """

    def __init__(self, stop_filter: StopFilter | None = None) -> None:
        self.stop_filter = stop_filter

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            yield token
            if not _JOINER_PATTERN.search(token.text):
                continue
            for part in re.split(r"[.\-_]", token.text):
                normalized = normalize_text(part)
                if not normalized or normalized == token.normalized:
                    continue
                part_token = token.copy_with(text=part, normalized=normalized, type=classify_token(normalized))
                if self.stop_filter is None or self.stop_filter.keep(part_token):
                    yield part_token


class StemCache:
    """Bounded LRU cache of word -> stem."""

    def __init__(self, capacity: int = 10000) -> None:
        self.capacity = max(1, capacity)
        self._entries: OrderedDict[str, str] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, word: str) -> str | None:
        stem = self._entries.get(word)
        if stem is None:
            self.misses += 1
            return None
        self._entries.move_to_end(word)
        self.hits += 1
        return stem

    def put(self, word: str, stem: str) -> None:
        self._entries[word] = stem
        self._entries.move_to_end(word)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, float]:
        lookups = self.hits + self.misses
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
        }


# Longest suffixes first; a suffix is stripped only when more than two
# characters remain.
_SUFFIXES: tuple[str, ...] = (
    "tion",
    "sion",
    "ness",
    "ment",
    "able",
    "ible",
    "less",
    "ous",
    "ive",
    "ize",
    "ise",
    "ing",
    "est",
    "ful",
    "ed",
    "er",
    "ly",
)


class SuffixStemmer:
    """Small suffix-stripping stemmer.

    Not a full Porter implementation: irregular forms such as ``ran`` are not
    collapsed onto ``run``. Each pass strips at most one suffix plus a plural
    ``s``; passes repeat until the word is stable, which makes the stemmer
    idempotent.
    """

    def __init__(self, cache: StemCache | None = None) -> None:
        self.cache = cache if cache is not None else StemCache()

    def __call__(self, word: str) -> str:
        if not word:
            return ""
        cached = self.cache.get(word)
        if cached is not None:
            return cached
        stemmed = word
        while True:
            candidate = _strip_once(stemmed)
            if candidate == stemmed:
                break
            stemmed = candidate
        self.cache.put(word, stemmed)
        return stemmed


def _strip_once(word: str) -> str:
    if len(word) <= 3 or not word.isalpha():
        return word
    stemmed = word
    for suffix in _SUFFIXES:
        if word.endswith(suffix) and len(word) > len(suffix) + 2:
            stemmed = word[: -len(suffix)]
            if suffix == "ing" and stemmed.endswith("nn") and len(stemmed) > 3:
                stemmed = stemmed[:-1]
            break
    if stemmed.endswith("s") and not stemmed.endswith("ss") and len(stemmed) > 3:
        stemmed = stemmed[:-1]
    return stemmed


class StemFilter:
    """Replaces each token's normalized form with its stem."""

    def __init__(self, stemmer: SuffixStemmer) -> None:
        self.stemmer = stemmer

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.type is TokenType.WORD:
                yield token.copy_with(normalized=self.stemmer(token.normalized))
            else:
                yield token


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str, field: str = "content") -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text, field)
        for token_filter in self.filters:
            stream = token_filter(stream)
        return list(stream)


class TextAnalyzer:
    """Default analyzer used by the index and the query engine.

    Each instance owns its stem cache; engines never share analyzer state.
    """

    def __init__(
        self,
        *,
        stopwords: Iterable[str] | None = None,
        stem_cache_size: int = 10000,
    ) -> None:
        self.tokenizer = RegexTokenizer()
        self.stop_filter = StopFilter(stopwords)
        self.stemmer = SuffixStemmer(StemCache(stem_cache_size))
        self.pipeline = AnalyzerPipeline(
            self.tokenizer,
            [self.stop_filter, CompoundSplitFilter(self.stop_filter), StemFilter(self.stemmer)],
        )

    def tokenize(self, text: str, field: str = "content") -> list[Token]:
        if not text or not isinstance(text, str):
            return []
        return list(self.tokenizer(text, field))

    def normalize(self, text: str) -> str:
        return normalize_text(text)

    def remove_stop_words(self, tokens: Iterable[Token]) -> list[Token]:
        return list(self.stop_filter(tokens))

    def stem(self, word: str) -> str:
        return self.stemmer(normalize_text(word))

    def analyze(self, text: str, field: str = "content") -> list[Token]:
        """Tokenize, drop stop words and stem; the result is what gets indexed."""

        if not text or not isinstance(text, str):
            return []
        return self.pipeline(text, field)

    def analyze_terms(self, text: str) -> list[str]:
        """Return the distinct analyzed terms of ``text`` in first-seen order."""

        return list(dict.fromkeys(token.normalized for token in self.analyze(text)))

    def calculate_similarity(self, text1: str, text2: str) -> float:
        """Jaccard similarity over the sets of normalized word and number tokens."""

        first = {token.normalized for token in self.tokenize(text1) if token.type is not TokenType.SYMBOL}
        second = {token.normalized for token in self.tokenize(text2) if token.type is not TokenType.SYMBOL}
        union = first | second
        if not union:
            return 0.0
        return len(first & second) / len(union)

    def extract_ngrams(self, tokens: Sequence[Token], n: int = 2) -> list[str]:
        if n < 1 or len(tokens) < n:
            return []
        return [" ".join(token.normalized for token in tokens[i : i + n]) for i in range(len(tokens) - n + 1)]

    def extract_keywords(self, text: str, k: int = 10) -> list[Keyword]:
        """Rank stemmed terms by frequency, length and how early they first appear."""

        tokens = [token for token in self.analyze(text) if token.type is TokenType.WORD]
        if not tokens or k <= 0:
            return []
        frequencies: Counter[str] = Counter(token.normalized for token in tokens)
        first_seen: dict[str, int] = {}
        for token in tokens:
            first_seen.setdefault(token.normalized, token.position)
        span = max(token.position for token in tokens) + 1
        keywords = [
            Keyword(
                text=term,
                score=freq * math.log(len(term) + 1) * (1.0 + 0.5 * (1.0 - first_seen[term] / span)),
            )
            for term, freq in frequencies.items()
        ]
        keywords.sort(key=lambda keyword: keyword.score, reverse=True)
        return keywords[:k]

    def generate_suggestions(self, prefix: str, vocabulary: Iterable[str], limit: int = 10) -> list[str]:
        """Case-insensitive prefix completion; shorter then alphabetical first."""

        needle = prefix.strip().lower()
        if not needle or limit <= 0:
            return []
        matches = {term for term in vocabulary if term.lower().startswith(needle)}
        return sorted(matches, key=lambda term: (len(term), term.lower()))[:limit]

    def generate_fuzzy_suggestions(
        self,
        text: str,
        vocabulary: Iterable[str],
        max_distance: int = 2,
        limit: int = 5,
    ) -> list[tuple[str, int]]:
        """Rank vocabulary terms by prefix match, then substring, then edit distance."""

        needle = text.strip().lower()
        if len(needle) < 2 or limit <= 0:
            return []
        scored: list[tuple[int, float, str]] = []
        for term in dict.fromkeys(vocabulary):
            lowered = term.lower()
            if lowered.startswith(needle):
                scored.append((0, 1.0, term))
            elif needle in lowered:
                scored.append((0, 0.9, term))
            else:
                distance = levenshtein_distance(needle, lowered, max_distance)
                if distance <= max_distance:
                    scored.append((distance, 1.0 - distance / max(len(needle), len(lowered)), term))
        scored.sort(key=lambda item: (item[0], -item[1], item[2]))
        return [(term, distance) for distance, _, term in scored[:limit]]

    def clear_cache(self) -> None:
        self.stemmer.cache.clear()

    def get_cache_stats(self) -> dict[str, float]:
        return self.stemmer.cache.stats()
