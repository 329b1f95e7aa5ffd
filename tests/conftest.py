"""
Pytest configuration and fixtures for portfolio scraper tests.
"""
import sys
import os
from pathlib import Path

import pytest

# Add Portfolio_code to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "Portfolio_code"))

# Mock environment variables to avoid .env dependency
os.environ['OPENAI_API_KEY'] = 'test-api-key-for-testing'
os.environ['FIRECRAWL_API_KEY'] = 'test-firecrawl-key'
os.environ['DATABASE_URL'] = ''
os.environ['EXTRACTION_WORKERS'] = '1'


class FakeRenderer:
    """
    Scripted PageRenderer.

    polls:   successive poll_crawl results (CrawlStatus or Exception); the last
             one repeats once the list is exhausted.
    scrapes: url -> ScrapedPage | Exception, or (url, want_structured) -> ...
             for different structured / plain responses.
    clock / poll_seconds: when set, each poll advances the FakeClock by
             poll_seconds, cut short at the timeout it was given.
    """

    def __init__(self, polls=None, scrapes=None, submit_error=None, clock=None, poll_seconds=0):
        self.polls = list(polls or [])
        self.scrapes = dict(scrapes or {})
        self.submit_error = submit_error
        self.clock = clock
        self.poll_seconds = poll_seconds
        self.submitted = []
        self.scrape_calls = []
        self.poll_timeouts = []
        self.poll_count = 0

    def submit_crawl(self, seed_url, max_depth, max_pages):
        self.submitted.append((seed_url, max_depth, max_pages))
        if self.submit_error is not None:
            raise self.submit_error
        return "job-1"

    def poll_crawl(self, job_id, timeout=15):
        from schema import CrawlStatus

        self.poll_count += 1
        self.poll_timeouts.append(timeout)
        if self.clock is not None:
            self.clock.now += min(self.poll_seconds, timeout)
        if not self.polls:
            return CrawlStatus(status="scraping")
        item = self.polls[min(self.poll_count, len(self.polls)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    def scrape_page(self, url, want_structured=False, schema=None, timeout_ms=25000):
        from errors import ProtocolError

        self.scrape_calls.append((url, want_structured))
        response = self.scrapes.get((url, want_structured), self.scrapes.get(url))
        if response is None:
            raise ProtocolError(f"no scripted response for {url}")
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_renderer():
    return FakeRenderer


@pytest.fixture
def make_ctx():
    def _make(renderer, seed_url="https://fund.com/portfolio", max_pages=50, cache=None):
        from cache import ResponseCache
        from context import ScrapeContext
        from utils.investor import extract_investor_name

        return ScrapeContext(
            renderer=renderer,
            cache=cache or ResponseCache(rng=lambda: 1.0),
            seed_url=seed_url,
            max_pages=max_pages,
            investor_name=extract_investor_name(seed_url),
            request_id="test",
        )
    return _make
