"""Parse GitLab API tokens configuration.

Format of the ``GITLAB_TOKENS`` value::

    token1,token2                                  # gitlab.com
    https://gl.example;tokA;https://gl2.example;tokB,tokC

Segments are separated by ``;``. A segment starting with ``http://`` or
``https://`` names an instance and the segment after it holds that
instance's comma-separated tokens. Any other segment is a token list for
gitlab.com.
"""

from __future__ import annotations

import enum
import os

from gitlab_collector.collector.models import InstanceCredentials
from gitlab_collector.core.config import GITLAB_TOKENS_ENV
from gitlab_collector.core.gitlab import DEFAULT_GITLAB_URL, normalize_base_url

_URL_PREFIXES = ("http://", "https://")


class _ParserState(enum.Enum):
    EXPECT_SEGMENT = "expect_segment"
    EXPECT_TOKENS = "expect_tokens"


def _split_tokens(segment: str) -> tuple[str, ...]:
    tokens = (t.strip() for t in segment.split(","))
    return tuple(dict.fromkeys(t for t in tokens if t))


def parse_tokens(value: str | None) -> list[InstanceCredentials]:
    """Parse a tokens configuration string.

    Returns an empty list when *value* is None or empty. A URL segment
    without a following token segment, or followed by one with no usable
    tokens, contributes nothing.
    """
    if not value:
        return []

    segments = value.split(";")
    configs: list[InstanceCredentials] = []
    state = _ParserState.EXPECT_SEGMENT
    pending_url = ""
    i = 0

    while i < len(segments):
        segment = segments[i].strip()

        if state is _ParserState.EXPECT_TOKENS:
            tokens = _split_tokens(segment)
            if tokens:
                configs.append(InstanceCredentials(base_url=pending_url, tokens=tokens))
            state = _ParserState.EXPECT_SEGMENT
            i += 1
            continue

        if not segment:
            i += 1
            continue

        if segment.startswith(_URL_PREFIXES):
            pending_url = segment.rstrip("/")
            state = _ParserState.EXPECT_TOKENS
            i += 1
            continue

        tokens = _split_tokens(segment)
        if tokens:
            configs.append(InstanceCredentials(base_url=DEFAULT_GITLAB_URL, tokens=tokens))
        i += 1

    return configs


def tokens_from_env(env_var: str = GITLAB_TOKENS_ENV) -> list[InstanceCredentials]:
    """Read and parse the tokens configuration from the environment."""
    return parse_tokens(os.environ.get(env_var))


def find_credentials(
    base_url: str,
    configs: list[InstanceCredentials],
) -> InstanceCredentials | None:
    """Return the first configuration matching *base_url* (case-insensitive)."""
    wanted = normalize_base_url(base_url)
    for config in configs:
        if normalize_base_url(config.base_url) == wanted:
            return config
    return None


def total_tokens(configs: list[InstanceCredentials]) -> int:
    return sum(len(c.tokens) for c in configs)
