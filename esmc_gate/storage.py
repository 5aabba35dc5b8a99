"""
Storage abstraction for the mesh result cache.

Provides the CacheStore protocol with file-system and in-memory
implementations. Entries are opaque text blobs addressed by name, each with
a last-modified timestamp used for TTL checks.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from .config import CacheConfig

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised by a store when an entry cannot be read or written."""


class CacheStoreType(Enum):
    """Type of cache store."""

    FILE = "file"
    INMEMORY = "inmemory"


class CacheStore(ABC):
    """Protocol for cache storage backends."""

    @abstractmethod
    def get(self, name: str) -> str | None:
        """
        Read an entry.

        Returns:
            Entry text, or None if not found

        Raises:
            CacheError: If the entry exists but cannot be read
        """

    @abstractmethod
    def put(self, name: str, text: str) -> None:
        """
        Write an entry, replacing any existing one.

        Raises:
            CacheError: If the entry cannot be written
        """

    @abstractmethod
    def delete(self, name: str) -> bool:
        """
        Delete an entry.

        Returns:
            True if deleted, False if not found
        """

    @abstractmethod
    def modified_at(self, name: str) -> float | None:
        """Last-modified time as a UNIX timestamp, or None if not found."""

    @abstractmethod
    def names(self) -> list[str]:
        """List entry names."""

    def now(self) -> float:
        """Current time on the same clock as ``modified_at``."""
        return time.time()


class FileCacheStore(CacheStore):
    """One file per entry in a cache directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / name

    def get(self, name: str) -> str | None:
        path = self._path(name)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"cannot read {path}: {e}") from e

    def put(self, name: str, text: str) -> None:
        path = self._path(name)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise CacheError(f"cannot write {path}: {e}") from e

    def delete(self, name: str) -> bool:
        try:
            self._path(name).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not delete cache entry %s: %s", name, e)
            return False
        return True

    def modified_at(self, name: str) -> float | None:
        try:
            return self._path(name).stat().st_mtime
        except OSError:
            return None

    def names(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.name for p in self.directory.iterdir() if p.is_file())


class InMemoryCacheStore(CacheStore):
    """
    In-memory implementation for testing.

    The clock is injectable so tests can age entries without sleeping.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.time
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, name: str) -> str | None:
        entry = self._entries.get(name)
        return entry[0] if entry else None

    def put(self, name: str, text: str) -> None:
        self._entries[name] = (text, self._clock())

    def delete(self, name: str) -> bool:
        return self._entries.pop(name, None) is not None

    def modified_at(self, name: str) -> float | None:
        entry = self._entries.get(name)
        return entry[1] if entry else None

    def names(self) -> list[str]:
        return sorted(self._entries)

    def now(self) -> float:
        return self._clock()

    def touch(self, name: str, modified_at: float) -> None:
        """Override an entry's modification time."""
        text, _ = self._entries[name]
        self._entries[name] = (text, modified_at)


def create_store(config: CacheConfig | None = None, root: Path | None = None) -> CacheStore:
    """
    Create a cache store from configuration.

    Args:
        config: Cache configuration
        root: Directory the configured cache directory is relative to
    """
    config = config or CacheConfig()
    store_type = CacheStoreType(config.store)

    if store_type == CacheStoreType.INMEMORY:
        return InMemoryCacheStore()

    directory = Path(config.directory)
    if root is not None and not directory.is_absolute():
        directory = root / directory
    return FileCacheStore(directory)


__all__ = [
    "CacheError",
    "CacheStore",
    "CacheStoreType",
    "FileCacheStore",
    "InMemoryCacheStore",
    "create_store",
]
