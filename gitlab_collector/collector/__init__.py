"""GitLab collector engine — cache-aware, multi-instance repository data collection."""

from gitlab_collector.collector.codec import CACHE_KEY, DEFAULT_TTL, decode, encode, is_fresh
from gitlab_collector.collector.credentials import find_credentials, parse_tokens, tokens_from_env
from gitlab_collector.collector.fetcher import collect_repository
from gitlab_collector.collector.gitlab_client import GitLabClient, RateLimitError
from gitlab_collector.collector.host import GitLabHost, GitLabProject, RepositoryHost
from gitlab_collector.collector.models import (
    CollectionResult,
    Commit,
    Contributors,
    InstanceCredentials,
    Release,
    RepositorySnapshot,
    RunStats,
)
from gitlab_collector.collector.pool import ClientPool, create_pool
from gitlab_collector.collector.runner import GitLabCollector, collect_gitlab_data

__all__ = [
    "CACHE_KEY",
    "DEFAULT_TTL",
    "ClientPool",
    "CollectionResult",
    "Commit",
    "Contributors",
    "GitLabClient",
    "GitLabCollector",
    "GitLabHost",
    "GitLabProject",
    "InstanceCredentials",
    "RateLimitError",
    "Release",
    "RepositoryHost",
    "RepositorySnapshot",
    "RunStats",
    "collect_gitlab_data",
    "collect_repository",
    "create_pool",
    "decode",
    "encode",
    "find_credentials",
    "is_fresh",
    "parse_tokens",
    "tokens_from_env",
]
