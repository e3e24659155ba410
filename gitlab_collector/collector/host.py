"""RepositoryHost — per-token access to the data a snapshot is built from."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from gitlab_collector.collector.gitlab_client import GitLabClient
from gitlab_collector.collector.models import LANGUAGE_SCALE, Commit, Release
from gitlab_collector.core.gitlab import encode_project_path
from gitlab_collector.exceptions import TransportError

log = structlog.get_logger("gitlab_collector.engine")

GOOD_FIRST_ISSUE_LABEL = "good first issue"


class GitLabLicense(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


class GitLabProject(BaseModel):
    """Subset of ``GET /projects/:id`` used to build a snapshot."""

    model_config = ConfigDict(extra="ignore")

    description: str | None = None
    default_branch: str
    path_with_namespace: str
    star_count: int
    topics: list[str] = []
    web_url: str
    license: GitLabLicense | None = None


class _GitLabCommit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    web_url: str
    committed_date: datetime

    def to_commit(self) -> Commit:
        return Commit(url=self.web_url, ts=self.committed_date)


class RepositoryHost(ABC):
    """Operations a hosting backend must support, bound to one credential.

    Required lookups raise :class:`TransportError`; best-effort lookups
    (good first issues, languages) return None instead of failing.
    """

    @abstractmethod
    async def get_project(self, project_path: str) -> GitLabProject: ...

    @abstractmethod
    async def get_contributors_count(self, project_path: str) -> int: ...

    @abstractmethod
    async def get_first_commit(self, project_path: str, ref: str) -> Commit | None: ...

    @abstractmethod
    async def get_good_first_issues_count(self, project_path: str) -> int | None: ...

    @abstractmethod
    async def get_languages(self, project_path: str) -> dict[str, int] | None: ...

    @abstractmethod
    async def get_latest_commit(self, project_path: str, ref: str) -> Commit: ...

    @abstractmethod
    async def get_latest_release(self, project_path: str) -> Release | None: ...

    async def aclose(self) -> None:
        """Release network resources held by this host."""


class GitLabHost(RepositoryHost):
    """RepositoryHost backed by the GitLab REST API."""

    def __init__(self, client: GitLabClient) -> None:
        self._client = client
        self.base_url = client.base_url

    @classmethod
    def create(cls, base_url: str, token: str) -> GitLabHost:
        """Factory used by the client pool. Raises ClientConstructionError."""
        return cls(GitLabClient(base_url, token))

    async def aclose(self) -> None:
        await self._client.close()

    @staticmethod
    def _project(project_path: str) -> str:
        return f"/projects/{encode_project_path(project_path)}"

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            return await self._client.get(path, params)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {path} failed: {exc}") from exc

    async def _get_all(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        try:
            return [item async for item in self._client.get_paginated(path, params)]
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {path} failed: {exc}") from exc

    async def get_project(self, project_path: str) -> GitLabProject:
        data = await self._get(self._project(project_path), {"license": "true"})
        try:
            project = GitLabProject.model_validate(data)
        except ValidationError as exc:
            raise TransportError(f"unexpected project payload for {project_path}: {exc}") from exc
        log.debug(
            "gitlab.project",
            project=project_path,
            license=project.license.name if project.license else None,
            topics=project.topics,
        )
        return project

    async def get_contributors_count(self, project_path: str) -> int:
        contributors = await self._get_all(f"{self._project(project_path)}/repository/contributors")
        return len(contributors)

    async def get_first_commit(self, project_path: str, ref: str) -> Commit | None:
        # Newest first, so the last item of the full walk is the oldest commit.
        commits = await self._get_all(
            f"{self._project(project_path)}/repository/commits", {"ref_name": ref}
        )
        if not commits:
            return None
        return self._parse_commit(project_path, commits[-1])

    async def get_good_first_issues_count(self, project_path: str) -> int | None:
        path = f"{self._project(project_path)}/issues_statistics"
        params = {"labels": GOOD_FIRST_ISSUE_LABEL, "state": "opened"}
        try:
            response = await self._client.get_response(path, params)
        except (httpx.HTTPError, TransportError) as exc:
            log.warning("gitlab.good_first_issues_failed", project=project_path, error=str(exc))
            return None

        if not response.is_success:
            log.debug(
                "gitlab.good_first_issues_unavailable",
                project=project_path,
                status=response.status_code,
            )
            return None

        try:
            opened = response.json()["statistics"]["counts"]["opened"]
        except (ValueError, KeyError, TypeError) as exc:
            log.warning("gitlab.good_first_issues_unparseable", project=project_path, error=str(exc))
            return None
        if not isinstance(opened, int) or isinstance(opened, bool):
            log.warning("gitlab.good_first_issues_unparseable", project=project_path, value=opened)
            return None
        return opened

    async def get_languages(self, project_path: str) -> dict[str, int] | None:
        path = f"{self._project(project_path)}/languages"
        try:
            response = await self._client.get_response(path)
        except (httpx.HTTPError, TransportError) as exc:
            log.warning("gitlab.languages_failed", project=project_path, error=str(exc))
            return None

        if not response.is_success:
            log.warning(
                "gitlab.languages_unavailable",
                project=project_path,
                status=response.status_code,
            )
            return None

        try:
            percentages = response.json()
            languages = {
                str(name): int(float(pct) * LANGUAGE_SCALE) for name, pct in percentages.items()
            }
        except (ValueError, TypeError, AttributeError) as exc:
            log.warning("gitlab.languages_unparseable", project=project_path, error=str(exc))
            return None

        if not languages:
            log.debug("gitlab.languages_empty", project=project_path)
            return None
        return languages

    async def get_latest_commit(self, project_path: str, ref: str) -> Commit:
        data = await self._get(
            f"{self._project(project_path)}/repository/commits",
            {"ref_name": ref, "per_page": 1},
        )
        if not isinstance(data, list) or not data:
            raise TransportError(f"no commits found for {project_path}@{ref}")
        return self._parse_commit(project_path, data[0])

    async def get_latest_release(self, project_path: str) -> Release | None:
        data = await self._get(
            f"{self._project(project_path)}/releases",
            {"sort": "desc", "per_page": 1},
        )
        if not isinstance(data, list) or not data:
            return None

        release = data[0]
        if not isinstance(release, dict):
            raise TransportError(f"unexpected release payload for {project_path}")
        links = release.get("_links") or {}
        url = links.get("self") or f"{self.base_url}/{project_path}/-/releases"
        ts = release.get("released_at") or release.get("created_at")
        try:
            return Release(url=url, ts=ts)
        except ValidationError as exc:
            raise TransportError(f"unexpected release payload for {project_path}: {exc}") from exc

    @staticmethod
    def _parse_commit(project_path: str, item: Any) -> Commit:
        try:
            return _GitLabCommit.model_validate(item).to_commit()
        except ValidationError as exc:
            raise TransportError(f"unexpected commit payload for {project_path}: {exc}") from exc
