"""Domain model - the repository record the engine indexes.

Uses Pydantic dataclasses for validation, so records coming from an API
payload or a local cache are checked once at the boundary and can be
trusted everywhere else.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Self

from pydantic import Field, field_validator
from pydantic.dataclasses import dataclass


# Field names (in index order) that carry free text.
SEARCHABLE_FIELDS: tuple[str, ...] = ("name", "description", "topics", "owner", "language")

# Shorthand keys accepted by ``Repository.from_mapping``.
_KEY_ALIASES = {
    "stars": "stargazers_count",
    "forks": "forks_count",
    "watchers": "watchers_count",
    "open_issues": "open_issues_count",
}


@dataclass(frozen=True)
class Owner:
    """Value object for the account that owns a repository."""

    login: str
    avatar_url: str = ""
    html_url: str = ""


@dataclass(frozen=True)
class Repository:
    """A repository record; immutable once indexed.

    ``id`` is the document identity. Updates go through the index manager as a
    remove-then-reinsert of a new ``Repository`` value.
    """

    id: str
    name: str
    owner: Owner
    description: str | None = None
    language: str | None = None
    topics: tuple[str, ...] = ()
    stargazers_count: int = Field(default=0, ge=0)
    forks_count: int = Field(default=0, ge=0)
    watchers_count: int = Field(default=0, ge=0)
    open_issues_count: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pushed_at: datetime | None = None
    archived: bool = False
    fork: bool = False
    html_url: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Repository id must be non-empty")
        return str(value)

    @field_validator("topics", mode="before")
    @classmethod
    def _coerce_topics(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(part for part in value.split() if part)
        return tuple(str(item) for item in value if item)

    @property
    def owner_login(self) -> str:
        return self.owner.login

    def searchable_fields(self) -> dict[str, str]:
        """Return non-empty free-text fields keyed by field name, in index order."""

        values = {
            "name": self.name,
            "description": self.description or "",
            "topics": " ".join(self.topics),
            "owner": self.owner.login,
            "language": self.language or "",
        }
        return {name: values[name] for name in SEARCHABLE_FIELDS if values[name].strip()}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a GitHub-API shaped mapping (ISO timestamps)."""

        def _iso(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "id": self.id,
            "name": self.name,
            "owner": {"login": self.owner.login, "avatar_url": self.owner.avatar_url, "html_url": self.owner.html_url},
            "description": self.description,
            "language": self.language,
            "topics": list(self.topics),
            "stargazers_count": self.stargazers_count,
            "forks_count": self.forks_count,
            "watchers_count": self.watchers_count,
            "open_issues_count": self.open_issues_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "pushed_at": _iso(self.pushed_at),
            "archived": self.archived,
            "fork": self.fork,
            "html_url": self.html_url,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """Build a repository from an API payload or a shorthand mapping.

        ``owner`` may be a mapping with ``login`` or a plain login string;
        ``stars``/``forks``/``watchers`` are accepted as aliases of the
        ``*_count`` keys. Unknown keys are ignored.
        """

        payload: dict[str, Any] = {}
        for key, value in data.items():
            payload[_KEY_ALIASES.get(key, key)] = value

        owner = payload.get("owner")
        if isinstance(owner, Mapping):
            owner_value = Owner(
                login=str(owner.get("login") or ""),
                avatar_url=str(owner.get("avatar_url") or ""),
                html_url=str(owner.get("html_url") or ""),
            )
        elif isinstance(owner, Owner):
            owner_value = owner
        else:
            owner_value = Owner(login=str(owner or ""))

        known = {
            "id",
            "name",
            "description",
            "language",
            "topics",
            "stargazers_count",
            "forks_count",
            "watchers_count",
            "open_issues_count",
            "created_at",
            "updated_at",
            "pushed_at",
            "archived",
            "fork",
            "html_url",
        }
        kwargs = {key: value for key, value in payload.items() if key in known and value is not None}
        kwargs.setdefault("name", "")
        return cls(owner=owner_value, **kwargs)
