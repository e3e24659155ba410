"""Key/value byte cache used to persist collected data between runs."""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from gitlab_collector.exceptions import CacheError


class Cache(ABC):
    """Opaque byte store addressed by a logical key."""

    @abstractmethod
    def read(self, key: str) -> bytes | None:
        """Return the stored bytes for *key*, or None if nothing is stored."""
        ...

    @abstractmethod
    def write(self, key: str, data: bytes) -> None:
        """Store *data* under *key*, replacing any previous value."""
        ...


class LocalCache(Cache):
    """One file per key inside *cache_dir*."""

    def __init__(self, cache_dir: str | Path) -> None:
        self.cache_dir = Path(cache_dir)

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or key in (".", ".."):
            raise CacheError(f"invalid cache key: {key!r}")
        return self.cache_dir / key

    def read(self, key: str) -> bytes | None:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheError(f"cannot read {path}: {exc}") from exc

    def write(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise CacheError(f"cannot write {path}: {exc}") from exc
