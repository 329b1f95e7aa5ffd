"""
Tests for cache.py - 48h renderer response cache.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

START = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now


class TestResponseCacheExpiry:
    """Tests for TTL semantics."""

    def test_present_just_before_expiry(self):
        from cache import ResponseCache, CRAWL

        clock = Clock()
        cache = ResponseCache(clock=clock, rng=lambda: 1.0)
        cache.put("https://fund.com", CRAWL, {"pages": 3})

        clock.now = START + timedelta(hours=47, minutes=59)
        assert cache.get("https://fund.com", CRAWL) == {"pages": 3}

    def test_absent_just_after_expiry(self):
        from cache import ResponseCache, CRAWL

        clock = Clock()
        cache = ResponseCache(clock=clock, rng=lambda: 1.0)
        cache.put("https://fund.com", CRAWL, {"pages": 3})

        clock.now = START + timedelta(hours=48, minutes=1)
        assert cache.get("https://fund.com", CRAWL) is None

    def test_content_types_are_independent(self):
        from cache import ResponseCache, SCRAPE_DETAIL, SCRAPE_MARKDOWN

        cache = ResponseCache(clock=Clock(), rng=lambda: 1.0)
        cache.put("https://fund.com/portfolio/a", SCRAPE_DETAIL, {"x": 1})
        assert cache.get("https://fund.com/portfolio/a", SCRAPE_MARKDOWN) is None

    def test_newest_entry_wins(self):
        from cache import ResponseCache, SCRAPE_LISTING

        clock = Clock()
        cache = ResponseCache(clock=clock, rng=lambda: 1.0)
        cache.put("u", SCRAPE_LISTING, {"v": 1})
        clock.now = START + timedelta(hours=1)
        cache.put("u", SCRAPE_LISTING, {"v": 2})
        assert cache.get("u", SCRAPE_LISTING) == {"v": 2}

    def test_put_never_upserts(self):
        from cache import ResponseCache, MemoryCacheStore, SCRAPE_LISTING

        store = MemoryCacheStore()
        cache = ResponseCache(store=store, clock=Clock(), rng=lambda: 1.0)
        cache.put("u", SCRAPE_LISTING, {"v": 1})
        cache.put("u", SCRAPE_LISTING, {"v": 2})
        assert len(store) == 2


class TestResponseCacheCleanup:
    """Tests for the probabilistic purge."""

    def test_cleanup_removes_expired_entries(self):
        from cache import ResponseCache, MemoryCacheStore, CRAWL

        clock = Clock()
        store = MemoryCacheStore()
        cache = ResponseCache(store=store, clock=clock, rng=lambda: 0.0)
        cache.put("old", CRAWL, {})
        clock.now = START + timedelta(hours=49)
        cache.put("new", CRAWL, {})
        assert len(store) == 1

    def test_no_cleanup_when_not_sampled(self):
        from cache import ResponseCache, CRAWL

        store = Mock()
        cache = ResponseCache(store=store, clock=Clock(), rng=lambda: 0.5)
        cache.put("u", CRAWL, {})
        store.purge_expired.assert_not_called()


class TestResponseCacheFailures:
    """Store errors never escape the cache."""

    def test_get_fails_open(self):
        from cache import ResponseCache, CRAWL

        store = Mock()
        store.latest.side_effect = RuntimeError("db down")
        cache = ResponseCache(store=store, clock=Clock())
        assert cache.get("u", CRAWL) is None

    def test_put_errors_swallowed(self):
        from cache import ResponseCache, CRAWL

        store = Mock()
        store.insert.side_effect = RuntimeError("db down")
        cache = ResponseCache(store=store, clock=Clock())
        cache.put("u", CRAWL, {"a": 1})  # should not raise

    def test_crawl_cache_key(self):
        from cache import crawl_cache_key

        assert crawl_cache_key("https://fund.com", 2, 50) == "https://fund.com_depth2_max50"
