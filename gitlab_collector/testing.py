"""Test doubles for gitlab_collector — use in unit and integration tests.

Usage::

    from gitlab_collector.testing import FakeRepositoryHost

    host = FakeRepositoryHost()                                  # canned data
    host = FakeRepositoryHost(fail={"get_latest_commit"})        # required step fails
    host = FakeRepositoryHost(languages=None, delay=0.01)

    pool = await create_pool(base_url, ["t1"], factory=FakeRepositoryHost.factory())
    cache = MemoryCache()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from types import MappingProxyType

from gitlab_collector.collector.host import GitLabLicense, GitLabProject, RepositoryHost
from gitlab_collector.collector.models import Commit, Release
from gitlab_collector.core.cache import Cache
from gitlab_collector.exceptions import CacheError, TransportError

_TS = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

DEFAULT_FIRST_COMMIT = Commit(url="https://gitlab.com/c/first", ts=_TS)
DEFAULT_LATEST_COMMIT = Commit(url="https://gitlab.com/c/latest", ts=_TS)
DEFAULT_RELEASE = Release(url="https://gitlab.com/r/v1", ts=_TS)
DEFAULT_LANGUAGES: Mapping[str, int] = MappingProxyType({"Python": 87500, "Shell": 12500})


def make_project(project_path: str = "group/project", **overrides) -> GitLabProject:
    """GitLabProject with sensible defaults for *project_path*."""
    data = {
        "description": "A test project",
        "default_branch": "main",
        "path_with_namespace": project_path,
        "star_count": 42,
        "topics": ["python", "testing"],
        "web_url": f"https://gitlab.com/{project_path}",
        "license": GitLabLicense(name="MIT License"),
    }
    data.update(overrides)
    return GitLabProject(**data)


class FakeRepositoryHost(RepositoryHost):
    """In-memory RepositoryHost returning canned values.

    Parameters
    ----------
    fail:
        Names of methods that raise :class:`TransportError`.
    delay:
        Seconds every call sleeps, to interleave concurrent tasks.
    """

    def __init__(
        self,
        *,
        token: str = "fake-token",
        project: GitLabProject | None = None,
        contributors: int = 7,
        first_commit: Commit | None = DEFAULT_FIRST_COMMIT,
        good_first_issues: int | None = 3,
        languages: Mapping[str, int] | None = DEFAULT_LANGUAGES,
        latest_commit: Commit = DEFAULT_LATEST_COMMIT,
        latest_release: Release | None = DEFAULT_RELEASE,
        fail: set[str] | frozenset[str] = frozenset(),
        delay: float = 0.0,
    ) -> None:
        self.token = token
        self._project = project
        self._contributors = contributors
        self._first_commit = first_commit
        self._good_first_issues = good_first_issues
        self._languages = dict(languages) if languages is not None else None
        self._latest_commit = latest_commit
        self._latest_release = latest_release
        self._fail = set(fail)
        self._delay = delay
        self.calls: list[tuple[str, str]] = []
        self.in_use = 0
        self.max_in_use = 0
        self.closed = False

    @classmethod
    def factory(cls, **kwargs) -> Callable[[str, str], FakeRepositoryHost]:
        """Pool factory building one fake per token; built hosts land in ``.hosts``."""
        hosts: list[FakeRepositoryHost] = []

        def _build(base_url: str, token: str) -> FakeRepositoryHost:
            host = cls(token=token, **kwargs)
            hosts.append(host)
            return host

        _build.hosts = hosts  # type: ignore[attr-defined]
        return _build

    async def _call(self, name: str, project_path: str) -> None:
        # Concurrency probe: counts tasks inside this host at the same time.
        self.calls.append((name, project_path))
        self.in_use += 1
        self.max_in_use = max(self.max_in_use, self.in_use)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            else:
                await asyncio.sleep(0)
            if name in self._fail:
                raise TransportError(f"{name} failed for {project_path}")
        finally:
            self.in_use -= 1

    async def get_project(self, project_path: str) -> GitLabProject:
        await self._call("get_project", project_path)
        return self._project or make_project(project_path)

    async def get_contributors_count(self, project_path: str) -> int:
        await self._call("get_contributors_count", project_path)
        return self._contributors

    async def get_first_commit(self, project_path: str, ref: str) -> Commit | None:
        await self._call("get_first_commit", project_path)
        return self._first_commit

    async def get_good_first_issues_count(self, project_path: str) -> int | None:
        await self._call("get_good_first_issues_count", project_path)
        return self._good_first_issues

    async def get_languages(self, project_path: str) -> dict[str, int] | None:
        await self._call("get_languages", project_path)
        return dict(self._languages) if self._languages is not None else None

    async def get_latest_commit(self, project_path: str, ref: str) -> Commit:
        await self._call("get_latest_commit", project_path)
        return self._latest_commit

    async def get_latest_release(self, project_path: str) -> Release | None:
        await self._call("get_latest_release", project_path)
        return self._latest_release

    async def aclose(self) -> None:
        self.closed = True


class MemoryCache(Cache):
    """Dict-backed Cache that records reads and writes."""

    def __init__(
        self,
        initial: dict[str, bytes] | None = None,
        *,
        fail_read: bool = False,
        fail_write: bool = False,
    ) -> None:
        self.data: dict[str, bytes] = dict(initial or {})
        self.fail_read = fail_read
        self.fail_write = fail_write
        self.reads = 0
        self.writes = 0

    def read(self, key: str) -> bytes | None:
        self.reads += 1
        if self.fail_read:
            raise CacheError(f"cannot read {key}")
        return self.data.get(key)

    def write(self, key: str, data: bytes) -> None:
        self.writes += 1
        if self.fail_write:
            raise CacheError(f"cannot write {key}")
        self.data[key] = data
