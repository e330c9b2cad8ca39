"""Posting data models for the inverted index."""

from __future__ import annotations

from array import array
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Posting:
    """Occurrences of one term in one document (within one field or globally)."""

    doc_id: str
    positions: array = field(default_factory=lambda: array("I"))

    @property
    def frequency(self) -> int:
        return len(self.positions)

    def to_dict(self) -> dict[str, Any]:
        return {"doc_id": self.doc_id, "frequency": self.frequency, "positions": list(self.positions)}

    @classmethod
    def from_positions(cls, doc_id: str, positions: Iterable[int]) -> Posting:
        return cls(doc_id=doc_id, positions=array("I", sorted(positions)))


@dataclass
class PostingList:
    """All postings for a term, keyed by document id in insertion order."""

    term: str
    postings: dict[str, Posting] = field(default_factory=dict)

    @property
    def document_frequency(self) -> int:
        return len(self.postings)

    @property
    def total_frequency(self) -> int:
        return sum(posting.frequency for posting in self.postings.values())

    def add(self, posting: Posting) -> None:
        self.postings[posting.doc_id] = posting

    def extend(self, doc_id: str, positions: Iterable[int]) -> None:
        """Merge ``positions`` into the document's posting."""
        existing = self.postings.get(doc_id)
        merged = sorted(set(existing.positions if existing else ()) | set(positions))
        self.postings[doc_id] = Posting(doc_id=doc_id, positions=array("I", merged))

    def remove(self, doc_id: str) -> bool:
        return self.postings.pop(doc_id, None) is not None

    def get(self, doc_id: str) -> Posting | None:
        return self.postings.get(doc_id)

    def doc_ids(self) -> list[str]:
        return list(self.postings)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self.postings

    def __iter__(self) -> Iterator[Posting]:
        return iter(self.postings.values())

    def __len__(self) -> int:
        return len(self.postings)

    def __bool__(self) -> bool:
        return bool(self.postings)
