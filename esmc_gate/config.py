"""
Configuration management for esmc-gate.

Configuration is a small tree of dataclasses persisted as JSON under
``.claude/esmc-gate-config.json`` in the project root. Every field has a
default, so a missing file yields the stock behaviour. Values of the wrong
type raise ConfigError when the dataclass is built.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

DEFAULT_STOP_WORDS: tuple[str, ...] = (
    "the",
    "and",
    "with",
    "for",
    "from",
    "that",
    "this",
    "have",
    "need",
    "want",
)

# Must match storage.CacheStoreType
CACHE_STORES = ("file", "inmemory")

CONFIG_RELATIVE_PATH = Path(".claude") / "esmc-gate-config.json"


class ConfigError(ValueError):
    """Raised when a configuration file or value is malformed."""


def _require_str(owner: str, name: str, value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{owner}.{name} must be a non-empty string, got {value!r}")


@dataclass
class CacheConfig:
    """Configuration for the phase-1 mesh result cache."""

    directory: str = ".esmc-cache"
    ttl_seconds: float = 3600.0  # 1 hour
    stop_words: tuple[str, ...] = DEFAULT_STOP_WORDS
    # Words shorter than this are dropped from the topic key
    min_keyword_length: int = 4
    store: Literal["file", "inmemory"] = "file"

    def __post_init__(self) -> None:
        _require_str("cache", "directory", self.directory)

        ttl = self.ttl_seconds
        if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
            raise ConfigError(f"cache.ttl_seconds must be a number, got {ttl!r}")
        if not math.isfinite(ttl) or ttl < 0:
            raise ConfigError(f"cache.ttl_seconds must be finite and >= 0, got {ttl!r}")

        length = self.min_keyword_length
        if isinstance(length, bool) or not isinstance(length, int) or length < 0:
            raise ConfigError(
                f"cache.min_keyword_length must be an integer >= 0, got {length!r}"
            )

        if isinstance(self.stop_words, str) or not isinstance(self.stop_words, (list, tuple)):
            raise ConfigError(
                f"cache.stop_words must be a list of words, got {self.stop_words!r}"
            )
        if not all(isinstance(word, str) for word in self.stop_words):
            raise ConfigError("cache.stop_words must contain only strings")
        # JSON round-trips tuples as lists
        self.stop_words = tuple(self.stop_words)

        if self.store not in CACHE_STORES:
            raise ConfigError(f"cache.store must be one of {CACHE_STORES}, got {self.store!r}")


@dataclass
class CheckpointConfig:
    """File names used by the L5 checkpoint."""

    vetting_result_file: str = ".esmc-athena-vetting-result.json"
    execution_state_file: str = ".esmc-execution-state.json"
    result_file: str = ".esmc-l5-checkpoint-result.json"

    def __post_init__(self) -> None:
        for f in fields(self):
            _require_str("checkpoint", f.name, getattr(self, f.name))


@dataclass
class GateConfig:
    """Complete esmc-gate configuration."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    checkpoint: CheckpointConfig = field(default_factory=CheckpointConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> GateConfig:
        """
        Load configuration from file, ignoring unknown keys.

        Raises:
            ConfigError: If the file is not valid JSON or a value is malformed
        """
        if path is None:
            path = find_project_root() / CONFIG_RELATIVE_PATH

        if not path.exists():
            return cls()

        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"{path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{path} must hold a JSON object, got {type(data).__name__}")

        return cls(
            cache=CacheConfig(**_section(data, "cache", CacheConfig)),
            checkpoint=CheckpointConfig(**_section(data, "checkpoint", CheckpointConfig)),
        )

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = find_project_root() / CONFIG_RELATIVE_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        cache_dict = dict(self.cache.__dict__)
        cache_dict["stop_words"] = list(self.cache.stop_words)

        with open(path, "w") as f:
            json.dump(
                {
                    "cache": cache_dict,
                    "checkpoint": self.checkpoint.__dict__,
                },
                f,
                indent=2,
            )


def _section(data: dict, name: str, cls: type) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a JSON object, got {type(section).__name__}")
    known = {f.name for f in fields(cls)}
    return {k: v for k, v in section.items() if k in known}


def find_project_root(start: Path | None = None) -> Path:
    """
    Find the project root by walking up from ``start``.

    The root is the nearest directory containing a ``.claude/`` directory.
    Falls back to ``start`` (the current directory by default) when none
    of its ancestors has one.
    """
    start = (start or Path.cwd()).resolve()
    for candidate in (start, *start.parents):
        if (candidate / ".claude").is_dir():
            return candidate
    return start
