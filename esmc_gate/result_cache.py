"""
Phase-1 mesh result cache for esmc-gate.

Caches mesh analysis results keyed on the keyword set of a free-text topic,
so the same issue phrased differently reuses the same entry. Entries expire
after a fixed TTL (one hour by default); expiry is lazy and happens when an
entry is checked.

Usage:
    from esmc_gate.result_cache import MeshResultCache

    cache = MeshResultCache.for_directory(Path(".esmc-cache"))
    status = cache.check("Fix the login bug")
    if not status.cached:
        cache.save("Fix the login bug", {"piu": {...}})
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .config import CacheConfig
from .storage import CacheError, CacheStore, FileCacheStore

logger = logging.getLogger(__name__)

ENTRY_PREFIX = "phase1-mesh-"
ENTRY_SUFFIX = ".json"

PAYLOAD_SLOTS: tuple[str, ...] = ("piu", "dki", "uip", "pca", "mesh_synthesis")

_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Key derivation
# =============================================================================


def topic_keywords(topic: str, config: CacheConfig | None = None) -> list[str]:
    """
    Reduce a topic to its sorted keyword list.

    Lowercases, collapses whitespace, drops short words and stop words,
    then sorts so word order does not matter.
    """
    config = config or CacheConfig()
    normalized = _WHITESPACE.sub(" ", topic.lower().strip())
    stop_words = set(config.stop_words)
    return sorted(
        word
        for word in normalized.split()
        if len(word) >= config.min_keyword_length and word not in stop_words
    )


def topic_hash(topic: str, config: CacheConfig | None = None) -> str:
    """Derive the 16-hex-char cache key for a topic."""
    joined = "_".join(topic_keywords(topic, config))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]


def entry_name(key: str) -> str:
    """File name of the cache entry for a key."""
    return f"{ENTRY_PREFIX}{key}{ENTRY_SUFFIX}"


# =============================================================================
# Result types
# =============================================================================


def _minutes(seconds: float) -> float:
    return round(seconds / 60, 1)


@dataclass
class CacheCheck:
    """Outcome of a cache check."""

    cached: bool
    hash: str
    reason: str | None = None  # "cache_miss" or "ttl_expired" on a miss
    age_seconds: float | None = None
    ttl_remaining_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"cached": self.cached, "hash": self.hash}
        if self.reason is not None:
            result["reason"] = self.reason
        if self.age_seconds is not None:
            result["age_minutes"] = _minutes(self.age_seconds)
        if self.ttl_remaining_seconds is not None:
            result["ttl_remaining_minutes"] = _minutes(self.ttl_remaining_seconds)
        return result


@dataclass
class CacheLoad:
    """Outcome of a cache load."""

    loaded: bool
    hash: str
    reason: str | None = None  # miss reason, "parse_error" or "read_error"
    data: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"loaded": self.loaded, "hash": self.hash}
        if self.reason is not None:
            result["reason"] = self.reason
        if self.error is not None:
            result["error"] = self.error
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class CacheSave:
    """Outcome of a cache save."""

    saved: bool
    hash: str
    entry: str | None = None
    created: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"saved": self.saved, "hash": self.hash}
        if self.entry is not None:
            result["entry"] = self.entry
        if self.created is not None:
            result["created"] = self.created
        if self.error is not None:
            result["error"] = self.error
        return result


# =============================================================================
# Cache
# =============================================================================


class MeshResultCache:
    """
    TTL-bounded cache of mesh analysis results.

    Every operation is a single best-effort attempt. Store failures are
    reported in the returned result object and never raised.
    """

    def __init__(self, store: CacheStore, config: CacheConfig | None = None):
        """
        Initialize the cache.

        Args:
            store: Backing store for entries
            config: Cache configuration (TTL, keyword filtering)
        """
        self.store = store
        self.config = config or CacheConfig()

    @classmethod
    def for_directory(cls, directory: Path, config: CacheConfig | None = None) -> MeshResultCache:
        """Create a cache backed by files in ``directory``."""
        return cls(FileCacheStore(directory), config)

    @property
    def ttl_seconds(self) -> float:
        return self.config.ttl_seconds

    def key_for(self, topic: str) -> str:
        return topic_hash(topic, self.config)

    def _age(self, name: str) -> float | None:
        modified = self.store.modified_at(name)
        if modified is None:
            return None
        return max(self.store.now() - modified, 0.0)

    def check(self, topic: str) -> CacheCheck:
        """
        Check whether a fresh entry exists for a topic.

        An entry older than the TTL is deleted and reported as a miss.
        """
        key = self.key_for(topic)
        name = entry_name(key)

        age = self._age(name)
        if age is None:
            logger.debug("Cache miss for %s", key)
            return CacheCheck(cached=False, hash=key, reason="cache_miss")

        if age > self.ttl_seconds:
            self.store.delete(name)
            logger.debug("Cache entry %s expired after %.0fs", key, age)
            return CacheCheck(cached=False, hash=key, reason="ttl_expired", age_seconds=age)

        logger.debug("Cache hit for %s (age %.0fs)", key, age)
        return CacheCheck(
            cached=True,
            hash=key,
            age_seconds=age,
            ttl_remaining_seconds=self.ttl_seconds - age,
        )

    def load(self, topic: str) -> CacheLoad:
        """
        Load the cached result for a topic.

        Returns:
            CacheLoad with the stored document plus hash and age on a hit.
            A miss carries the check reason; an unreadable entry carries
            "read_error" or "parse_error" and the error message.
        """
        status = self.check(topic)
        if not status.cached:
            return CacheLoad(loaded=False, hash=status.hash, reason=status.reason)

        name = entry_name(status.hash)
        try:
            text = self.store.get(name)
        except CacheError as e:
            logger.warning("Could not read cache entry %s: %s", status.hash, e)
            return CacheLoad(loaded=False, hash=status.hash, reason="read_error", error=str(e))

        if text is None:
            # Removed between check and read
            return CacheLoad(loaded=False, hash=status.hash, reason="cache_miss")

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Malformed cache entry %s: %s", status.hash, e)
            return CacheLoad(loaded=False, hash=status.hash, reason="parse_error", error=str(e))

        if not isinstance(document, dict):
            error = f"expected a JSON object, got {type(document).__name__}"
            logger.warning("Malformed cache entry %s: %s", status.hash, error)
            return CacheLoad(loaded=False, hash=status.hash, reason="parse_error", error=error)

        document.update(
            {
                "hash": status.hash,
                "cache_age_minutes": _minutes(status.age_seconds or 0.0),
                "from_cache": True,
            }
        )
        return CacheLoad(loaded=True, hash=status.hash, data=document)

    def save(self, topic: str, payload: Any) -> CacheSave:
        """
        Save a result for a topic, replacing any existing entry.

        Args:
            topic: Free-text topic
            payload: Mapping of payload slot name to result; missing slots
                are stored as null and unknown keys are ignored
        """
        key = self.key_for(topic)
        name = entry_name(key)
        if not isinstance(payload, dict):
            payload = {}

        created = datetime.fromtimestamp(self.store.now(), UTC).isoformat()
        try:
            document: dict[str, Any] = {
                "topic": topic,
                "hash": key,
                "created": created,
                "ttl_seconds": int(self.ttl_seconds),
            }
            for slot in PAYLOAD_SLOTS:
                document[slot] = payload.get(slot)

            text = json.dumps(document, indent=2)
            self.store.put(name, text)
        except (CacheError, TypeError, ValueError, OverflowError) as e:
            logger.warning("Could not save cache entry %s: %s", key, e)
            return CacheSave(saved=False, hash=key, error=str(e))

        logger.debug("Saved cache entry %s", key)
        return CacheSave(saved=True, hash=key, entry=name, created=created)

    def invalidate(self, topic: str) -> bool:
        """Delete the entry for a topic. Returns True if one existed."""
        return self.store.delete(entry_name(self.key_for(topic)))

    def purge_expired(self) -> list[str]:
        """Delete every expired entry and return the removed keys."""
        removed = []
        for name in self.store.names():
            if not (name.startswith(ENTRY_PREFIX) and name.endswith(ENTRY_SUFFIX)):
                continue
            age = self._age(name)
            if age is not None and age > self.ttl_seconds and self.store.delete(name):
                removed.append(name[len(ENTRY_PREFIX) : -len(ENTRY_SUFFIX)])
        if removed:
            logger.debug("Purged %d expired cache entries", len(removed))
        return removed


__all__ = [
    "PAYLOAD_SLOTS",
    "CacheCheck",
    "CacheLoad",
    "CacheSave",
    "MeshResultCache",
    "entry_name",
    "topic_hash",
    "topic_keywords",
]
