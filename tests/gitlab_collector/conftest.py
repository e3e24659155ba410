"""Shared fixtures for gitlab_collector tests. No network access is needed."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gitlab_collector.catalog import Catalog

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Frozen clock returning NOW."""
    return lambda: NOW


@pytest.fixture
def make_catalog():
    """Factory: make_catalog(["url1", "url2"], ["url3"]) -> one item per list."""

    def _make(*repo_lists: list[str]) -> Catalog:
        return Catalog.model_validate(
            {
                "items": [
                    {"name": f"item-{i}", "repositories": [{"url": u} for u in urls]}
                    for i, urls in enumerate(repo_lists)
                ]
            }
        )

    return _make
