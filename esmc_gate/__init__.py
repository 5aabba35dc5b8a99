"""
esmc-gate: L5 checkpoint activation and phase-1 mesh result caching.

Example:
    >>> from esmc_gate import evaluate
    >>> evaluate({"iterationCount": 3, "interventionCount": 3}).activate
    True
    >>> from esmc_gate import topic_hash
    >>> topic_hash("Fix the login bug") == topic_hash("bug login fix")
    True
"""

from esmc_gate.activation import (
    ActivationDecision,
    FollowUpQuestion,
    TriggerSet,
    evaluate,
    extract_triggers,
)
from esmc_gate.config import CacheConfig, CheckpointConfig, GateConfig
from esmc_gate.result_cache import (
    CacheCheck,
    CacheLoad,
    CacheSave,
    MeshResultCache,
    topic_hash,
    topic_keywords,
)
from esmc_gate.storage import CacheStore, FileCacheStore, InMemoryCacheStore

__version__ = "0.1.0"

__all__ = [
    "ActivationDecision",
    "CacheCheck",
    "CacheConfig",
    "CacheLoad",
    "CacheSave",
    "CacheStore",
    "CheckpointConfig",
    "FileCacheStore",
    "FollowUpQuestion",
    "GateConfig",
    "InMemoryCacheStore",
    "MeshResultCache",
    "TriggerSet",
    "evaluate",
    "extract_triggers",
    "topic_hash",
    "topic_keywords",
]
