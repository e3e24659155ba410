"""Build a RepositorySnapshot for one repository from API calls only (no cache)."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from gitlab_collector.collector.host import RepositoryHost
from gitlab_collector.collector.models import Contributors, RepositorySnapshot
from gitlab_collector.core.gitlab import parse_gitlab_url
from gitlab_collector.exceptions import TransportError

log = structlog.get_logger("gitlab_collector.engine")

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def contributors_url(base_url: str, project_path: str) -> str:
    return f"{base_url}/{project_path}/-/graphs/main?ref_type=heads"


async def collect_repository(
    host: RepositoryHost,
    repo_url: str,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> RepositorySnapshot:
    """Collect a snapshot for *repo_url* using a single checked-out host.

    All-or-nothing: any failure in project, contributors, first commit,
    latest commit or latest release raises. Good first issues and languages
    are best-effort and end up as None when unavailable.
    """
    parsed = parse_gitlab_url(repo_url)
    if parsed is None:
        raise TransportError(f"invalid gitlab repository url: {repo_url!r}")
    base_url, project_path = parsed

    project = await host.get_project(project_path)
    branch = project.default_branch

    contributors_count = await host.get_contributors_count(project_path)
    first_commit = await host.get_first_commit(project_path, branch)
    good_first_issues = await _best_effort(
        "good_first_issues", repo_url, lambda: host.get_good_first_issues_count(project_path)
    )
    languages = await _best_effort("languages", repo_url, lambda: host.get_languages(project_path))
    latest_commit = await host.get_latest_commit(project_path, branch)
    latest_release = await host.get_latest_release(project_path)

    return RepositorySnapshot(
        generated_at=clock(),
        contributors=Contributors(
            count=contributors_count,
            url=contributors_url(base_url, project_path),
        ),
        description=project.description or "",
        first_commit=first_commit,
        good_first_issues=good_first_issues,
        languages=languages or None,
        latest_commit=latest_commit,
        latest_release=latest_release,
        license=project.license.name if project.license else None,
        stars=project.star_count,
        topics=project.topics,
        url=project.web_url,
    )


async def _best_effort(name: str, repo_url: str, call: Callable[[], Awaitable[T]]) -> T | None:
    """Run an optional lookup; failures degrade to None."""
    try:
        return await call()
    except Exception as exc:
        log.warning("fetcher.optional_failed", field=name, repo=repo_url, error=str(exc))
        return None
