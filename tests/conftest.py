"""
Pytest configuration and fixtures for esmc-gate tests.
"""

import os
import sys
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

# Add project root to path so we can import the package without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

# -----------------------------------------------------------------------------
# Hypothesis Profiles
# -----------------------------------------------------------------------------
# Usage: HYPOTHESIS_PROFILE=fast pytest tests/
#
#   fast   - 10 examples, generate only
#   dev    - 50 examples, standard phases (default)
#   ci     - 100 examples, all phases, no deadline
# -----------------------------------------------------------------------------

settings.register_profile(
    "fast",
    max_examples=10,
    phases=[Phase.generate],
    verbosity=Verbosity.quiet,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=50,
    phases=[Phase.generate, Phase.target, Phase.shrink],
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.generate, Phase.target, Phase.shrink, Phase.explain],
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))

from esmc_gate.config import CacheConfig
from esmc_gate.result_cache import MeshResultCache
from esmc_gate.storage import FileCacheStore, InMemoryCacheStore


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> InMemoryCacheStore:
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def memory_cache(memory_store) -> MeshResultCache:
    """Cache over an in-memory store with a controllable clock."""
    return MeshResultCache(memory_store, CacheConfig())


@pytest.fixture
def cache_dir(tmp_path) -> Path:
    return tmp_path / ".esmc-cache"


@pytest.fixture
def file_cache(cache_dir) -> MeshResultCache:
    """Cache over real files in a temporary directory."""
    return MeshResultCache(FileCacheStore(cache_dir), CacheConfig())
