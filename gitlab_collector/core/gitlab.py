"""GitLab repository URL utilities."""

from __future__ import annotations

import re
from urllib.parse import quote

# Marker of the other hosting platform a catalog may mix in.
FOREIGN_PLATFORM_MARKER = "github.com"

DEFAULT_GITLAB_URL = "https://gitlab.com"

GITLAB_REPO_URL_RE = re.compile(r"^(?P<base>https?://[^/]+)/(?P<path>.+?)/?$")


def parse_gitlab_url(repo_url: str) -> tuple[str, str] | None:
    """Split a repository URL into ``(instance_base_url, project_path)``.

    Handles:
      - https://gitlab.com/group/project
      - https://gitlab.example.org/group/subgroup/project.git
      - http://gitlab.local/group/project/

    Returns None for GitHub URLs and for anything that is not
    ``scheme://host/path``.
    """
    if FOREIGN_PLATFORM_MARKER in repo_url:
        return None

    match = GITLAB_REPO_URL_RE.match(repo_url)
    if match is None:
        return None

    base = match.group("base")
    path = match.group("path").removesuffix(".git")
    if not path:
        return None
    return base, path


def normalize_base_url(base_url: str) -> str:
    """Comparison form of an instance URL: no trailing slashes, lower-case."""
    return base_url.rstrip("/").lower()


def encode_project_path(project_path: str) -> str:
    """URL-encode a project path for ``/projects/{id}`` endpoints."""
    return quote(project_path, safe="")
