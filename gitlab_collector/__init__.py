"""gitlab-collector — enrich catalog repositories with GitLab metadata."""

__version__ = "0.1.0"
