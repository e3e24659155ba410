"""Runtime settings read from environment variables."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from datetime import timedelta

GITLAB_TOKENS_ENV = "GITLAB_TOKENS"

_DEFAULT_CACHE_DIR = ".cache/gitlab-collector"
_DEFAULT_TTL_DAYS = 7.0


@dataclass(frozen=True)
class Settings:
    tokens: str | None
    cache_dir: str
    cache_ttl: timedelta
    task_timeout: float | None


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def _env_optional_float(key: str) -> float | None:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return None
    return float(raw)


def load_settings() -> Settings:
    """Build :class:`Settings` from the current environment.

    Raises ValueError when a numeric variable is unparseable or out of range.
    """
    ttl_days = _env_float("GITLAB_COLLECTOR_CACHE_TTL_DAYS", _DEFAULT_TTL_DAYS)
    if not math.isfinite(ttl_days) or ttl_days < 0:
        raise ValueError("GITLAB_COLLECTOR_CACHE_TTL_DAYS must be a finite, non-negative number")
    try:
        cache_ttl = timedelta(days=ttl_days)
    except OverflowError as exc:
        raise ValueError(f"GITLAB_COLLECTOR_CACHE_TTL_DAYS is too large: {ttl_days}") from exc

    task_timeout = _env_optional_float("GITLAB_COLLECTOR_TASK_TIMEOUT")
    if task_timeout is not None and not (0 < task_timeout < math.inf):
        raise ValueError("GITLAB_COLLECTOR_TASK_TIMEOUT must be a positive, finite number")

    return Settings(
        tokens=os.environ.get(GITLAB_TOKENS_ENV),
        cache_dir=os.environ.get("GITLAB_COLLECTOR_CACHE_DIR", _DEFAULT_CACHE_DIR),
        cache_ttl=cache_ttl,
        task_timeout=task_timeout,
    )
