"""
Schema definition for the repository index.

Field types:
- TextField: analyzed free text, indexed into its own per-field sub-index and
  weighted by ``boost`` at scoring time
- KeywordField: exact-match identifiers (the document id)
- NumericField: counters used for range clauses, filters and sorting
- DateField: timestamps used for range clauses, date filters and sorting

The schema is serializable and travels inside the serialized index blob, so a
loaded index scores with the weights it was built with.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from repo_search.config import FieldWeights
from repo_search.domain.model import Repository


class FieldType(str, Enum):
    """Types of fields supported in the schema."""

    TEXT = "text"
    KEYWORD = "keyword"
    NUMERIC = "numeric"
    DATE = "date"


@dataclass(frozen=True)
class SchemaField(ABC):
    """Base class for all schema fields.

    ``source`` names the ``Repository`` attribute the value is read from;
    it defaults to the field name.
    """

    name: str
    boost: float = 1.0
    source: str | None = None

    @property
    @abstractmethod
    def field_type(self) -> FieldType:
        """Return the field type."""

    @property
    def attribute(self) -> str:
        return self.source or self.name

    def value_of(self, repository: Repository) -> Any:
        return getattr(repository, self.attribute, None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "type": self.field_type.value, "boost": self.boost}
        if self.source:
            data["source"] = self.source
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SchemaField:
        field_type = FieldType(data["type"])
        common = {
            "name": str(data["name"]),
            "boost": float(data.get("boost", 1.0)),
            "source": data.get("source"),
        }
        if field_type == FieldType.TEXT:
            return TextField(**common)
        if field_type == FieldType.KEYWORD:
            return KeywordField(**common)
        if field_type == FieldType.NUMERIC:
            return NumericField(**common)
        if field_type == FieldType.DATE:
            return DateField(**common)
        msg = f"Unknown field type: {field_type}"
        raise ValueError(msg)


@dataclass(frozen=True)
class TextField(SchemaField):
    """Analyzed text field with its own per-field posting lists."""

    @property
    def field_type(self) -> FieldType:
        return FieldType.TEXT


@dataclass(frozen=True)
class KeywordField(SchemaField):
    """Exact-match keyword field (not analyzed, not scored)."""

    @property
    def field_type(self) -> FieldType:
        return FieldType.KEYWORD


@dataclass(frozen=True)
class NumericField(SchemaField):
    """Integer counter usable in range clauses and sorting."""

    @property
    def field_type(self) -> FieldType:
        return FieldType.NUMERIC


@dataclass(frozen=True)
class DateField(SchemaField):
    """Timestamp usable in range clauses, date filters and sorting."""

    @property
    def field_type(self) -> FieldType:
        return FieldType.DATE

    def value_of(self, repository: Repository) -> datetime | None:
        return getattr(repository, self.attribute, None)


@dataclass
class Schema:
    """
    Schema definition for the repository index.

    Example:
        schema = Schema(
            fields=[
                KeywordField("id"),
                TextField("name", boost=2.0),
                NumericField("stars", source="stargazers_count"),
            ],
        )
    """

    fields: list[SchemaField]
    unique_field: str = "id"
    name: str = "repositories"

    def __post_init__(self) -> None:
        self._field_map: dict[str, SchemaField] = {f.name: f for f in self.fields}
        if self.unique_field not in self._field_map:
            msg = f"Unique field '{self.unique_field}' not found in schema"
            raise ValueError(msg)

    def __getitem__(self, name: str) -> SchemaField:
        return self._field_map[name]

    def __contains__(self, name: object) -> bool:
        return name in self._field_map

    def __iter__(self) -> Iterator[SchemaField]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def text_fields(self) -> list[TextField]:
        """Return text fields in index order."""
        return [f for f in self.fields if isinstance(f, TextField)]

    @property
    def text_field_names(self) -> list[str]:
        return [f.name for f in self.text_fields]

    @property
    def range_fields(self) -> dict[str, NumericField | DateField]:
        """Fields addressable by range clauses (``stars:>100``, ``created:2020..2021``)."""
        return {f.name: f for f in self.fields if isinstance(f, NumericField | DateField)}

    def get_boost(self, field_name: str) -> float:
        if field_name in self._field_map:
            return self._field_map[field_name].boost
        return 1.0

    def weights(self) -> dict[str, float]:
        return {f.name: f.boost for f in self.text_fields}

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "unique_field": self.unique_field,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Schema:
        fields = [SchemaField.from_dict(f) for f in data["fields"]]
        return cls(
            fields=fields,
            unique_field=data.get("unique_field", "id"),
            name=data.get("name", "repositories"),
        )


def create_repository_schema(weights: FieldWeights | None = None) -> Schema:
    """
    Create the schema for repository records.

    Text fields (in index order): name, description, topics, owner, language,
    boosted by ``weights``. Numeric and date fields back range clauses,
    filters and sorting.
    """
    weights = weights or FieldWeights()
    return Schema(
        name="repositories",
        unique_field="id",
        fields=[
            KeywordField("id", boost=0.0),
            TextField("name", boost=weights.name),
            TextField("description", boost=weights.description),
            TextField("topics", boost=weights.topics),
            TextField("owner", boost=weights.owner, source="owner_login"),
            TextField("language", boost=weights.language),
            NumericField("stars", source="stargazers_count"),
            NumericField("forks", source="forks_count"),
            NumericField("watchers", source="watchers_count"),
            NumericField("issues", source="open_issues_count"),
            DateField("created", source="created_at"),
            DateField("updated", source="updated_at"),
            DateField("pushed", source="pushed_at"),
        ],
    )
