"""(De)serialization of the collected data for the cache store."""

from __future__ import annotations

import json
from datetime import datetime, timedelta

import structlog
from pydantic import ValidationError

from gitlab_collector.collector.models import CollectionResult, RepositorySnapshot
from gitlab_collector.exceptions import CacheCorruptError

log = structlog.get_logger("gitlab_collector.engine")

# Cache key (file name) used for the collected GitLab data.
CACHE_KEY = "gitlab.json"

# How long a cached snapshot stays valid.
DEFAULT_TTL = timedelta(days=7)


def encode(result: CollectionResult) -> bytes:
    """Serialize *result* as pretty JSON; equal maps give equal bytes.

    Non-ASCII text is written as \\u escapes, so any string the API returned
    (lone surrogates included) can be persisted.
    """
    payload = {url: snapshot.model_dump(mode="json") for url, snapshot in result.items()}
    return (json.dumps(payload, indent=2, sort_keys=True) + "\n").encode("ascii")


def decode(data: bytes) -> CollectionResult:
    """Deserialize a cache payload.

    Raises CacheCorruptError when the payload is not a JSON object. Entries
    that fail validation are dropped with a warning; unknown fields are
    ignored.
    """
    try:
        payload = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CacheCorruptError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise CacheCorruptError(f"expected an object, got {type(payload).__name__}")

    result: CollectionResult = {}
    for url, raw in payload.items():
        try:
            result[url] = RepositorySnapshot.model_validate(raw)
        except ValidationError as exc:
            log.warning("cache.entry_invalid", repo=url, errors=exc.error_count())
    return result


def is_fresh(
    snapshot: RepositorySnapshot,
    *,
    now: datetime,
    ttl: timedelta = DEFAULT_TTL,
) -> bool:
    """True while the snapshot is younger than *ttl* (strictly)."""
    return now - snapshot.generated_at < ttl
