"""Tests for cache keys and the memory and file caches."""
from datetime import timedelta

import pytest

from insight_pipeline.cache import FileCache, MemoryCache, make_cache_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestMakeCacheKey:

    def test_normalizes_whitespace_and_case(self):
        assert make_cache_key("input_analysis", "The WiFi  is\nDOWN") == \
            make_cache_key("input_analysis", "the wifi is down")

    def test_operation_and_discriminator_separate_keys(self):
        base = make_cache_key("input_analysis", "text", "general")
        assert base != make_cache_key("topic_generation", "text", "general")
        assert base != make_cache_key("input_analysis", "text", "inquiry")

    def test_prefix(self):
        assert make_cache_key("summary_generation", "x").startswith("summary_generation_")


class TestMemoryCache:

    def test_get_missing(self):
        assert MemoryCache().get("nope") is None

    def test_expiry(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        cache.set("k", "v", timedelta(seconds=10))
        clock.now += 9
        assert cache.get("k") == "v"
        clock.now += 1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_last_writer_wins(self):
        cache = MemoryCache()
        cache.set("k", "first", timedelta(hours=1))
        cache.set("k", "second", timedelta(hours=1))
        assert cache.get("k") == "second"

    def test_write_purges_expired_entries(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        cache.set("a", "1", timedelta(seconds=10))
        clock.now += 10
        cache.set("b", "2", timedelta(seconds=10))
        assert len(cache) == 1
        assert cache.get("b") == "2"

    def test_purge_expired(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        cache.set("short", "1", timedelta(seconds=5))
        cache.set("long", "2", timedelta(seconds=60))
        clock.now += 5
        assert cache.purge_expired() == 1
        assert cache.get("long") == "2"


class TestFileCache:

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, tmp_path, clock):
        return FileCache(tmp_path / "cache", clock=clock)

    def test_round_trip(self, cache):
        cache.set("input_analysis_abc", '{"score": 0.5}', timedelta(hours=24))
        assert cache.get("input_analysis_abc") == '{"score": 0.5}'
        assert cache.exists("input_analysis_abc")

    def test_expired_entry_is_removed(self, cache, clock):
        cache.set("k", "v", timedelta(seconds=5))
        clock.now += 5
        assert cache.get("k") is None
        assert not (cache.cache_dir / "k.json").exists()

    def test_corrupt_file_is_a_miss(self, cache):
        (cache.cache_dir / "k.json").write_text("{not json")
        assert cache.get("k") is None

    def test_no_temp_files_left(self, cache):
        cache.set("k", "v", timedelta(hours=1))
        assert [p.name for p in cache.cache_dir.iterdir()] == ["k.json"]
