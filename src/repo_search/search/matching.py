"""Approximate and positional term matching.

Edit distance for typo-tolerant fuzzy clauses, glob matching for wildcard
clauses, and positional adjacency checks for quoted phrases.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import fnmatch
import re


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Calculate the Levenshtein (edit) distance between two strings.

    Uses two DP rows, with early termination when the distance is known to
    exceed ``max_distance``; in that case ``max_distance + 1`` is returned.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("reakt", "react")
        1
        >>> levenshtein_distance("", "abc")
        3
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)
    if max_distance is not None and n - m > max_distance:
        return max_distance + 1

    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        row_min = j
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,
                curr_row[i - 1] + 1,
                prev_row[i - 1] + cost,
            )
            row_min = min(row_min, curr_row[i])

        if max_distance is not None and row_min > max_distance:
            return max_distance + 1

        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


def similarity_ratio(s1: str, s2: str) -> float:
    """Return ``1 - distance / longest`` in [0, 1]."""

    longest = max(len(s1), len(s2))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(s1, s2) / longest


def find_fuzzy_matches(
    query_term: str,
    vocabulary: Iterable[str],
    max_distance: int = 2,
) -> list[tuple[str, int]]:
    """Find vocabulary terms within ``max_distance`` edits of ``query_term``.

    Returns ``(term, distance)`` pairs sorted by distance, then alphabetically.
    """
    if not query_term:
        return []

    query_lower = query_term.lower()
    max_distance = max(0, max_distance)
    matches: list[tuple[str, int]] = []
    for term in vocabulary:
        term_lower = term.lower()
        if abs(len(query_lower) - len(term_lower)) > max_distance:
            continue
        distance = levenshtein_distance(query_lower, term_lower, max_distance)
        if distance <= max_distance:
            matches.append((term, distance))

    matches.sort(key=lambda x: (x[1], x[0].lower()))
    return matches


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a ``*``/``?`` glob into a case-insensitive full-match regex."""

    return re.compile(fnmatch.translate(pattern.lower()), re.IGNORECASE)


def find_glob_matches(pattern: str, vocabulary: Iterable[str]) -> list[str]:
    """Return vocabulary terms matching ``pattern``, sorted alphabetically."""

    if not pattern or set(pattern) <= {"*", "?"}:
        return []
    regex = compile_glob(pattern)
    return sorted(term for term in vocabulary if regex.match(term))


def find_phrase_starts(offsets: Sequence[int], position_lists: Sequence[Sequence[int]]) -> list[int]:
    """Return anchor positions where every phrase term sits at its offset.

    ``offsets[i]`` is the distance of term ``i`` from the first phrase term in
    the query, so gaps left by removed stop words must be reproduced exactly
    in the document.
    """
    if not position_lists or len(offsets) != len(position_lists):
        return []
    if any(not positions for positions in position_lists):
        return []

    base = offsets[0]
    position_sets = [set(positions) for positions in position_lists[1:]]
    starts: list[int] = []
    for anchor in position_lists[0]:
        if all(
            anchor + offset - base in positions
            for offset, positions in zip(offsets[1:], position_sets, strict=True)
        ):
            starts.append(anchor)
    return starts

