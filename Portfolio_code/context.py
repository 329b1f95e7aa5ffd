# context.py
import threading
import uuid
from dataclasses import dataclass, field

from cache import ResponseCache
from domain_health import DomainHealthTracker
from renderer import PageRenderer
from schema import CrawlStats


class RequestStats:
    """Counters shared by extraction workers."""

    def __init__(self):
        self._lock = threading.Lock()
        self.cache_hits = 0
        self.cache_misses = 0
        self.successful_pages = 0
        self.failed_pages = 0

    def hit(self) -> None:
        with self._lock:
            self.cache_hits += 1

    def miss(self) -> None:
        with self._lock:
            self.cache_misses += 1

    def page_succeeded(self) -> None:
        with self._lock:
            self.successful_pages += 1

    def page_failed(self) -> None:
        with self._lock:
            self.failed_pages += 1

    def to_crawl_stats(self, completed: int, total: int) -> CrawlStats:
        with self._lock:
            return CrawlStats(
                completed=completed,
                total=total,
                cache_hits=self.cache_hits,
                cache_misses=self.cache_misses,
                successful_pages=self.successful_pages,
                failed_pages=self.failed_pages,
            )


@dataclass
class ScrapeContext:
    renderer: PageRenderer
    cache: ResponseCache
    seed_url: str
    max_pages: int = 50
    investor_name: str = ""
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    health: DomainHealthTracker = field(default_factory=DomainHealthTracker)
    stats: RequestStats = field(default_factory=RequestStats)
