"""Tests for collect_repository."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gitlab_collector.collector.fetcher import collect_repository, contributors_url
from gitlab_collector.collector.models import Commit, Contributors, Release
from gitlab_collector.exceptions import TransportError
from gitlab_collector.testing import FakeRepositoryHost, make_project

URL = "https://gitlab.com/group/project"


class TestCollectRepository:
    @pytest.mark.anyio
    async def test_full_snapshot(self, clock, now):
        host = FakeRepositoryHost()
        snapshot = await collect_repository(host, URL, clock=clock)

        assert snapshot.generated_at == now
        assert snapshot.contributors == Contributors(
            count=7, url="https://gitlab.com/group/project/-/graphs/main?ref_type=heads"
        )
        assert snapshot.description == "A test project"
        assert snapshot.first_commit.url == "https://gitlab.com/c/first"
        assert snapshot.good_first_issues == 3
        assert snapshot.languages == {"Python": 87500, "Shell": 12500}
        assert snapshot.latest_commit.url == "https://gitlab.com/c/latest"
        assert snapshot.latest_release.url == "https://gitlab.com/r/v1"
        assert snapshot.license == "MIT License"
        assert snapshot.stars == 42
        assert snapshot.topics == ["python", "testing"]
        assert snapshot.url == URL

    @pytest.mark.anyio
    async def test_uses_project_path(self, clock):
        host = FakeRepositoryHost()
        await collect_repository(host, "https://gitlab.com/a/b/c.git", clock=clock)
        assert {path for _, path in host.calls} == {"a/b/c"}

    @pytest.mark.anyio
    async def test_default_branch_passed_to_commit_lookups(self, clock):
        seen: list[str] = []

        class _Host(FakeRepositoryHost):
            async def get_first_commit(self, project_path, ref):
                seen.append(ref)
                return await super().get_first_commit(project_path, ref)

            async def get_latest_commit(self, project_path, ref):
                seen.append(ref)
                return await super().get_latest_commit(project_path, ref)

        host = _Host(project=make_project(default_branch="develop"))
        await collect_repository(host, URL, clock=clock)
        assert seen == ["develop", "develop"]

    @pytest.mark.anyio
    async def test_step_order(self, clock):
        host = FakeRepositoryHost()
        await collect_repository(host, URL, clock=clock)
        assert [name for name, _ in host.calls] == [
            "get_project",
            "get_contributors_count",
            "get_first_commit",
            "get_good_first_issues_count",
            "get_languages",
            "get_latest_commit",
            "get_latest_release",
        ]

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "step",
        [
            "get_project",
            "get_contributors_count",
            "get_first_commit",
            "get_latest_commit",
            "get_latest_release",
        ],
    )
    async def test_required_step_failure_aborts(self, clock, step):
        host = FakeRepositoryHost(fail={step})
        with pytest.raises(TransportError):
            await collect_repository(host, URL, clock=clock)

    @pytest.mark.anyio
    async def test_latest_commit_failure_stops_before_release(self, clock):
        host = FakeRepositoryHost(fail={"get_latest_commit"})
        with pytest.raises(TransportError):
            await collect_repository(host, URL, clock=clock)
        assert "get_latest_release" not in [name for name, _ in host.calls]

    @pytest.mark.anyio
    async def test_optional_failures_degrade(self, clock):
        host = FakeRepositoryHost(fail={"get_good_first_issues_count", "get_languages"})
        snapshot = await collect_repository(host, URL, clock=clock)
        assert snapshot.good_first_issues is None
        assert snapshot.languages is None
        assert snapshot.latest_commit.url == "https://gitlab.com/c/latest"

    @pytest.mark.anyio
    async def test_optional_values_absent(self, clock):
        host = FakeRepositoryHost(
            good_first_issues=None,
            languages={},
            first_commit=None,
            latest_release=None,
        )
        snapshot = await collect_repository(host, URL, clock=clock)
        assert snapshot.good_first_issues is None
        assert snapshot.languages is None
        assert snapshot.first_commit is None
        assert snapshot.latest_release is None

    @pytest.mark.anyio
    async def test_missing_description_and_license(self, clock):
        host = FakeRepositoryHost(project=make_project(description=None, license=None))
        snapshot = await collect_repository(host, URL, clock=clock)
        assert snapshot.description == ""
        assert snapshot.license is None

    @pytest.mark.anyio
    async def test_commit_and_release_values_kept(self, clock):
        ts = datetime(2023, 6, 1, tzinfo=timezone.utc)
        host = FakeRepositoryHost(
            latest_commit=Commit(url="https://gitlab.com/c/abc", ts=ts),
            latest_release=Release(url="https://gitlab.com/r/v9", ts=None),
        )
        snapshot = await collect_repository(host, URL, clock=clock)
        assert snapshot.latest_commit == Commit(url="https://gitlab.com/c/abc", ts=ts)
        assert snapshot.latest_release.ts is None

    @pytest.mark.anyio
    async def test_invalid_url(self, clock):
        host = FakeRepositoryHost()
        with pytest.raises(TransportError):
            await collect_repository(host, "https://github.com/a/b", clock=clock)
        assert host.calls == []


def test_contributors_url():
    assert (
        contributors_url("https://gl.example", "a/b")
        == "https://gl.example/a/b/-/graphs/main?ref_type=heads"
    )
