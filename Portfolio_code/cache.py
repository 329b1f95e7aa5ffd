# cache.py
"""
Renderer response cache (48-hour expiry).

Entries are append-only: put() always inserts, get() returns the newest
non-expired entry for (url, content_type). The backing store is pluggable;
MemoryCacheStore is used when no DATABASE_URL is configured, db.PostgresCacheStore
otherwise.
"""
import logging
import random
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(hours=48)
CLEANUP_PROBABILITY = 0.01

CRAWL = "crawl"
SCRAPE_DETAIL = "scrape-detail"
SCRAPE_LISTING = "scrape-listing"
SCRAPE_MARKDOWN = "scrape-markdown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    url: str
    content_type: str
    response_data: Any
    created_at: datetime
    expires_at: datetime


class MemoryCacheStore:
    """Thread-safe in-process store. Same semantics as the Postgres table."""

    def __init__(self):
        self._entries: List[CacheEntry] = []
        self._lock = threading.Lock()

    def insert(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def latest(self, url: str, content_type: str, now: datetime) -> Optional[CacheEntry]:
        with self._lock:
            hits = [
                e for e in self._entries
                if e.url == url and e.content_type == content_type and e.expires_at > now
            ]
        if not hits:
            return None
        return max(hits, key=lambda e: e.created_at)

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.expires_at > now]
            return before - len(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ResponseCache:
    def __init__(
        self,
        store=None,
        clock: Callable[[], datetime] = utcnow,
        ttl: timedelta = CACHE_TTL,
        cleanup_probability: float = CLEANUP_PROBABILITY,
        rng: Callable[[], float] = random.random,
    ):
        self.store = store if store is not None else MemoryCacheStore()
        self.clock = clock
        self.ttl = ttl
        self.cleanup_probability = cleanup_probability
        self.rng = rng

    def get(self, url: str, content_type: str) -> Optional[Any]:
        """Return the cached response body, or None on miss or store error."""
        try:
            entry = self.store.latest(url, content_type, self.clock())
        except Exception as e:
            logger.error("Cache lookup error for %s (%s): %s", url, content_type, e)
            return None

        if entry is None:
            logger.debug("Cache MISS for %s: %s", content_type, url)
            return None
        logger.info("Cache HIT for %s: %s", content_type, url)
        return entry.response_data

    def put(self, url: str, content_type: str, response_data: Any) -> None:
        now = self.clock()
        entry = CacheEntry(
            url=url,
            content_type=content_type,
            response_data=response_data,
            created_at=now,
            expires_at=now + self.ttl,
        )
        try:
            self.store.insert(entry)
            logger.debug("Cached %s: %s (expires in %s)", content_type, url, self.ttl)
            if self.rng() < self.cleanup_probability:
                removed = self.store.purge_expired(now)
                logger.info("Cache cleanup removed %d expired entries", removed)
        except Exception as e:
            logger.error("Cache save error for %s (%s): %s", url, content_type, e)


def crawl_cache_key(seed_url: str, depth: int, max_pages: int) -> str:
    return f"{seed_url}_depth{depth}_max{max_pages}"
