"""Statistical helpers for TF-IDF scoring.

The functions here stay independent of the index structures so they can be
unit tested on plain numbers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class FieldLengthStats:
    """Aggregated term statistics for a field."""

    field: str
    total_terms: int
    document_count: int

    @property
    def average_length(self) -> float:
        if self.document_count == 0:
            return 0.0
        return self.total_terms / self.document_count


def compute_field_length_stats(field_lengths: Mapping[str, Mapping[str, int]]) -> dict[str, FieldLengthStats]:
    """Return aggregate stats for each field given per-document lengths."""

    stats: dict[str, FieldLengthStats] = {}
    for field_name, lengths in field_lengths.items():
        stats[field_name] = FieldLengthStats(
            field=field_name,
            total_terms=sum(max(length, 0) for length in lengths.values()),
            document_count=len(lengths),
        )
    return stats


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return ``log(total_docs / doc_freq)`` with the log argument floored at 1.

    A term present in every document scores 0 rather than going negative, and
    an unknown term (``doc_freq == 0``) also scores 0.
    """

    if total_docs <= 0 or doc_freq <= 0:
        return 0.0
    return math.log(max(total_docs / doc_freq, 1.0))


def tf_idf(tf: int, doc_freq: int, total_docs: int) -> float:
    if tf <= 0:
        return 0.0
    return tf * calculate_idf(doc_freq, total_docs)


def normalize_score(raw: float, max_raw: float, coverage: float) -> float:
    """Blend the relative raw score with clause coverage into [0, 1].

    When every candidate scored 0 (all terms appear in every document) the
    coverage alone orders results.
    """

    coverage = min(max(coverage, 0.0), 1.0)
    if max_raw <= 0:
        return coverage
    relative = min(max(raw / max_raw, 0.0), 1.0)
    return 0.8 * relative + 0.2 * coverage


def confidence(score: float, matched_fields: int) -> float:
    """Confidence grows with the score and with the number of matched fields."""

    return min(1.0, max(0.0, 0.7 * score + min(0.1 * matched_fields, 0.3)))
