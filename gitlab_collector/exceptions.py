"""Custom exceptions for gitlab-collector."""


class CollectorError(Exception):
    """Base exception for all collector errors."""


class TransportError(CollectorError):
    """A required GitLab API call failed (network, auth, 4xx/5xx, bad payload)."""


class ClientConstructionError(CollectorError):
    """An API client could not be built for a base URL / token pair."""


class PoolConstructionError(CollectorError):
    """A client pool could not be built for an instance."""

    def __init__(self, base_url: str, reason: str) -> None:
        self.base_url = base_url
        self.reason = reason
        super().__init__(f"cannot build client pool for {base_url}: {reason}")


class CacheError(CollectorError):
    """Reading from or writing to the cache store failed."""


class CacheCorruptError(CacheError):
    """Cache content could not be deserialized."""


class CatalogError(CollectorError):
    """The catalog file could not be read or parsed."""
