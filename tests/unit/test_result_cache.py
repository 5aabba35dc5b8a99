"""
Unit tests for the phase-1 mesh result cache.
"""

import json
import os
import time

import pytest

from esmc_gate.config import CacheConfig
from esmc_gate.result_cache import (
    PAYLOAD_SLOTS,
    MeshResultCache,
    entry_name,
    topic_hash,
    topic_keywords,
)
from esmc_gate.storage import CacheError, FileCacheStore, InMemoryCacheStore

TOPIC = "Refactor authentication middleware tokens"


class TestTopicKeywords:
    """Tests for keyword extraction and key derivation."""

    def test_drops_short_and_stop_words(self):
        assert topic_keywords("Fix the login bug") == ["login"]

    def test_stop_words_of_four_letters_are_dropped(self):
        assert topic_keywords("this code need that with want from have") == ["code"]

    def test_sorted_and_lowercased(self):
        assert topic_keywords("  Zebra   APPLE\tmango ") == ["apple", "mango", "zebra"]

    def test_empty_topic(self):
        assert topic_keywords("") == []
        assert topic_keywords("   ") == []

    def test_word_order_does_not_change_hash(self):
        assert topic_hash("Fix the login bug") == topic_hash("bug login fix")

    def test_hash_matches_sha256_prefix(self):
        import hashlib

        expected = hashlib.sha256(b"database_during_migration_timeout").hexdigest()[:16]
        assert topic_hash("timeout during database migration") == expected

    def test_empty_keyword_set_hashes_empty_string(self):
        import hashlib

        assert topic_hash("fix the bug") == hashlib.sha256(b"").hexdigest()[:16]

    def test_hash_shape(self):
        key = topic_hash(TOPIC)
        assert len(key) == 16
        assert all(c in "0123456789abcdef" for c in key)

    def test_different_keywords_differ(self):
        assert topic_hash("payment gateway retries") != topic_hash("payment gateway timeouts")

    def test_configurable_filtering(self):
        config = CacheConfig(stop_words=("login",), min_keyword_length=3)
        assert topic_keywords("Fix the login bug", config) == ["bug", "fix", "the"]

    def test_entry_name(self):
        assert entry_name("0123456789abcdef") == "phase1-mesh-0123456789abcdef.json"


class TestCheck:
    def test_miss(self, memory_cache):
        status = memory_cache.check(TOPIC)

        assert status.cached is False
        assert status.reason == "cache_miss"
        assert status.hash == topic_hash(TOPIC)

    def test_hit_after_save(self, memory_cache):
        memory_cache.save(TOPIC, {"piu": {"score": 1}})
        status = memory_cache.check(TOPIC)

        assert status.cached is True
        assert status.reason is None
        assert status.age_seconds == 0
        assert status.to_dict()["ttl_remaining_minutes"] == 60.0

    def test_hit_reports_age(self, memory_cache, clock):
        memory_cache.save(TOPIC, {})
        clock.advance(30 * 60)

        data = memory_cache.check(TOPIC).to_dict()
        assert data["cached"] is True
        assert data["age_minutes"] == 30.0
        assert data["ttl_remaining_minutes"] == 30.0

    def test_exactly_at_ttl_is_still_a_hit(self, memory_cache, clock):
        memory_cache.save(TOPIC, {})
        clock.advance(3600)

        assert memory_cache.check(TOPIC).cached is True

    def test_expired_entry_is_deleted(self, memory_cache, memory_store, clock):
        memory_cache.save(TOPIC, {})
        clock.advance(3601)

        status = memory_cache.check(TOPIC)

        assert status.cached is False
        assert status.reason == "ttl_expired"
        assert memory_store.names() == []

    def test_second_check_after_expiry_is_plain_miss(self, memory_cache, clock):
        memory_cache.save(TOPIC, {})
        clock.advance(7200)

        assert memory_cache.check(TOPIC).reason == "ttl_expired"
        assert memory_cache.check(TOPIC).reason == "cache_miss"

    def test_rephrased_topic_hits(self, memory_cache):
        memory_cache.save("Fix the login bug", {})
        assert memory_cache.check("bug login fix").cached is True

    def test_custom_ttl(self, memory_store, clock):
        cache = MeshResultCache(memory_store, CacheConfig(ttl_seconds=60))
        cache.save(TOPIC, {})
        clock.advance(61)

        assert cache.check(TOPIC).reason == "ttl_expired"


class TestLoad:
    def test_miss(self, memory_cache):
        result = memory_cache.load(TOPIC)

        assert result.loaded is False
        assert result.reason == "cache_miss"
        assert result.data is None
        assert result.error is None

    def test_returns_document_with_metadata(self, memory_cache, clock):
        memory_cache.save(TOPIC, {"piu": {"files": ["a.py"]}, "mesh_synthesis": "ok"})
        clock.advance(120)

        result = memory_cache.load(TOPIC)

        assert result.loaded is True
        assert result.data["topic"] == TOPIC
        assert result.data["piu"] == {"files": ["a.py"]}
        assert result.data["mesh_synthesis"] == "ok"
        assert result.data["dki"] is None
        assert result.data["hash"] == topic_hash(TOPIC)
        assert result.data["cache_age_minutes"] == 2.0
        assert result.data["from_cache"] is True

    def test_expired(self, memory_cache, clock):
        memory_cache.save(TOPIC, {})
        clock.advance(4000)

        result = memory_cache.load(TOPIC)
        assert result.loaded is False
        assert result.reason == "ttl_expired"

    def test_invalid_json_is_reported(self, memory_cache, memory_store):
        memory_store.put(entry_name(topic_hash(TOPIC)), "{broken")

        result = memory_cache.load(TOPIC)

        assert result.loaded is False
        assert result.reason == "parse_error"
        assert result.error

    def test_non_object_json_is_reported(self, memory_cache, memory_store):
        memory_store.put(entry_name(topic_hash(TOPIC)), "[1, 2, 3]")

        result = memory_cache.load(TOPIC)
        assert result.reason == "parse_error"
        assert "list" in result.error

    def test_read_error_is_reported(self):
        class BrokenStore(InMemoryCacheStore):
            def get(self, name):
                raise CacheError("disk on fire")

        store = BrokenStore()
        cache = MeshResultCache(store)
        cache.save(TOPIC, {})

        result = cache.load(TOPIC)
        assert result.loaded is False
        assert result.reason == "read_error"
        assert result.error == "disk on fire"

    def test_to_dict(self, memory_cache):
        memory_cache.save(TOPIC, {"uip": 1})

        data = memory_cache.load(TOPIC).to_dict()
        assert data["loaded"] is True
        assert data["data"]["uip"] == 1


class TestSave:
    def test_document_shape(self, memory_cache, memory_store):
        result = memory_cache.save(TOPIC, {"pca": [1, 2]})

        assert result.saved is True
        document = json.loads(memory_store.get(result.entry))
        assert document["topic"] == TOPIC
        assert document["hash"] == result.hash
        assert document["ttl_seconds"] == 3600
        assert document["created"] == result.created
        assert document["created"].startswith("2023-11-14T")
        for slot in PAYLOAD_SLOTS:
            assert slot in document
        assert document["pca"] == [1, 2]

    def test_unknown_keys_are_not_stored(self, memory_cache, memory_store):
        result = memory_cache.save(TOPIC, {"extra": True})
        assert "extra" not in json.loads(memory_store.get(result.entry))

    def test_overwrites_without_merge(self, memory_cache):
        memory_cache.save(TOPIC, {"piu": 1, "dki": 2})
        memory_cache.save(TOPIC, {"piu": 3})

        data = memory_cache.load(TOPIC).data
        assert data["piu"] == 3
        assert data["dki"] is None

    def test_save_refreshes_age(self, memory_cache, clock):
        memory_cache.save(TOPIC, {})
        clock.advance(3000)
        memory_cache.save(TOPIC, {})

        assert memory_cache.check(TOPIC).age_seconds == 0

    def test_non_dict_payload(self, memory_cache):
        result = memory_cache.save(TOPIC, ["not", "a", "dict"])
        assert result.saved is True
        assert memory_cache.load(TOPIC).data["piu"] is None

    def test_unserializable_payload_is_reported(self, memory_cache):
        result = memory_cache.save(TOPIC, {"piu": object()})

        assert result.saved is False
        assert result.error

    def test_write_failure_is_reported(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        cache = MeshResultCache(FileCacheStore(blocker / ".esmc-cache"))

        result = cache.save(TOPIC, {})

        assert result.saved is False
        assert result.error
        assert result.to_dict()["saved"] is False


class TestInvalidateAndPurge:
    def test_invalidate(self, memory_cache):
        memory_cache.save(TOPIC, {})

        assert memory_cache.invalidate(TOPIC) is True
        assert memory_cache.check(TOPIC).reason == "cache_miss"
        assert memory_cache.invalidate(TOPIC) is False

    def test_purge_expired(self, memory_cache, memory_store, clock):
        memory_cache.save("stale analysis topic", {})
        clock.advance(4000)
        memory_cache.save("fresh analysis topic", {})
        memory_store.put("unrelated.json", "{}")
        memory_store.touch("unrelated.json", 0.0)

        removed = memory_cache.purge_expired()

        assert removed == [topic_hash("stale analysis topic")]
        assert memory_cache.check("fresh analysis topic").cached is True
        assert "unrelated.json" in memory_store.names()


class TestFileBackedCache:
    """Integration tests against real files."""

    def test_save_then_check(self, file_cache, cache_dir):
        result = file_cache.save(TOPIC, {"piu": {"ok": True}})
        status = file_cache.check(TOPIC).to_dict()

        assert (cache_dir / result.entry).exists()
        assert status["cached"] is True
        assert status["age_minutes"] == pytest.approx(0, abs=0.1)
        assert status["ttl_remaining_minutes"] == pytest.approx(60, abs=0.1)

    def test_creates_directory(self, file_cache, cache_dir):
        assert not cache_dir.exists()
        file_cache.save(TOPIC, {})
        assert cache_dir.is_dir()

    def test_stale_file_is_deleted(self, file_cache, cache_dir):
        result = file_cache.save(TOPIC, {})
        path = cache_dir / result.entry
        old = time.time() - 3700
        os.utime(path, (old, old))

        status = file_cache.check(TOPIC)

        assert status.cached is False
        assert status.reason == "ttl_expired"
        assert not path.exists()

    def test_invalid_json_on_disk(self, file_cache, cache_dir):
        cache_dir.mkdir(parents=True)
        (cache_dir / entry_name(topic_hash(TOPIC))).write_text("not json at all")

        result = file_cache.load(TOPIC)

        assert result.loaded is False
        assert result.reason == "parse_error"

    def test_load_round_trip(self, file_cache):
        file_cache.save(TOPIC, {"uip": {"intent": "refactor"}})

        result = file_cache.load(TOPIC)
        assert result.loaded is True
        assert result.data["uip"] == {"intent": "refactor"}

    def test_for_directory(self, cache_dir):
        cache = MeshResultCache.for_directory(cache_dir)
        assert isinstance(cache.store, FileCacheStore)
        assert cache.ttl_seconds == 3600
