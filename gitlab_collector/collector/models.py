"""Data models for the GitLab collector engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator

# Languages are reported by GitLab as percentages. They are stored as
# ``int(percentage * LANGUAGE_SCALE)``, a relative size with no unit. It is
# not a byte count and must not be read as one.
LANGUAGE_SCALE = 1000


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Commit(_Frozen):
    url: str
    ts: datetime | None = None


class Release(_Frozen):
    url: str
    ts: datetime | None = None


class Contributors(_Frozen):
    count: int
    url: str


class RepositorySnapshot(_Frozen):
    """Everything collected for one repository at one point in time.

    ``generated_at`` is set when the snapshot is fetched and kept as-is when
    the snapshot is reused from the cache.
    """

    generated_at: datetime
    contributors: Contributors
    description: str = ""
    first_commit: Commit | None = None
    good_first_issues: int | None = None
    languages: dict[str, int] | None = None
    latest_commit: Commit
    latest_release: Release | None = None
    license: str | None = None
    stars: int = 0
    topics: list[str] = []
    url: str

    @field_validator("generated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("topics")
    @classmethod
    def _dedupe_topics(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


# Keyed by the repository URL exactly as written in the catalog.
CollectionResult = dict[str, RepositorySnapshot]


@dataclass(frozen=True)
class InstanceCredentials:
    """API tokens configured for one GitLab instance."""

    base_url: str
    tokens: tuple[str, ...]


@dataclass
class RunStats:
    """Counters for a single collect() run (logged, never persisted)."""

    discovered: int = 0
    reused: int = 0
    fetched: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
