"""Catalog input: the entries whose repositories are enriched."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from gitlab_collector.exceptions import CatalogError


class Repository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    primary: bool | None = None


class CatalogItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    repositories: list[Repository] | None = None


class Catalog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: list[CatalogItem] = []

    def repository_urls(self) -> Iterator[str]:
        """Yield every repository URL, in catalog order, duplicates included."""
        for item in self.items:
            for repo in item.repositories or []:
                yield repo.url


def load_catalog(path: str | Path) -> Catalog:
    """Load a catalog from a JSON file.

    Raises CatalogError if the file cannot be read or does not validate.
    """
    path = Path(path)
    try:
        return Catalog.model_validate_json(path.read_bytes())
    except OSError as exc:
        raise CatalogError(f"cannot read catalog {path}: {exc}") from exc
    except ValidationError as exc:
        raise CatalogError(f"invalid catalog {path}: {exc}") from exc
