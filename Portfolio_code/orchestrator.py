# orchestrator.py
"""
Drives one renderer crawl job from planning to a classified page set.

    Planning -> JobSubmitted -> Polling -> Completed | TimedOut | Failed

Polling stops once POLL_CEILING seconds of wall-clock time have passed, and each
poll is given only the time left before the ceiling as its timeout. On
timeout whatever was discovered so far is returned as a partial result.
"""
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

import requests
from pydantic import ValidationError as PydanticValidationError

import depth_planner
from cache import CRAWL, crawl_cache_key
from classifier import is_investment_url, partition
from context import ScrapeContext
from errors import CrawlTimeoutError, ProtocolError, RendererError
from renderer import MIN_POLL_TIMEOUT
from schema import CrawlStatus, DiscoveryResult, PageDoc

logger = logging.getLogger(__name__)

POLL_INTERVAL = 2
MAX_POLL_ATTEMPTS = 30
POLL_CEILING = 60

COMPLETED = "completed"
FAILED = "failed"
TIMED_OUT = "timeout"


def _url_key(url: str) -> str:
    return url.split("#")[0].rstrip("/")


class DiscoveredPages:
    """Ordered, de-duplicated, never-shrinking set of admitted pages."""

    def __init__(self, seed_url: str):
        self.seed_url = seed_url
        self._pages: Dict[str, PageDoc] = {}

    def merge(self, pages: List[PageDoc]) -> int:
        added = 0
        for page in pages:
            key = _url_key(page.url)
            if not page.url or key in self._pages:
                continue
            if not is_investment_url(page.url, self.seed_url):
                continue
            self._pages[key] = page
            added += 1
        return added

    @property
    def urls(self) -> List[str]:
        return [p.url for p in self._pages.values()]

    @property
    def pages(self) -> List[PageDoc]:
        return list(self._pages.values())

    def classified(self) -> Tuple[List[str], List[str]]:
        return partition(self.urls, self.seed_url)

    def __len__(self):
        return len(self._pages)


def _result(ctx: ScrapeContext, depth: int, reason: str, found: DiscoveredPages,
            partial: bool, from_cache: bool, completed: int, total: int) -> DiscoveryResult:
    listing, detail = found.classified()
    return DiscoveryResult(
        seed_url=ctx.seed_url,
        final_depth=depth,
        depth_reason=reason,
        discovered_urls=found.urls,
        listing_pages=listing,
        detail_pages=detail,
        pages={p.url: p for p in found.pages},
        partial=partial,
        from_cache=from_cache,
        completed=completed,
        total=total,
    )


def _from_cache(ctx: ScrapeContext, key: str) -> Optional[CrawlStatus]:
    cached = ctx.cache.get(key, CRAWL)
    if cached is None:
        ctx.stats.miss()
        return None
    ctx.stats.hit()
    try:
        return CrawlStatus.model_validate(cached)
    except PydanticValidationError as e:
        logger.warning("[%s] Ignoring malformed cached crawl for %s: %s", ctx.request_id, key, e)
        return None


def discover(
    ctx: ScrapeContext,
    requested_depth: int,
    planner: Optional[Callable[[str, int], Tuple[int, str]]] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    poll_interval: float = POLL_INTERVAL,
    max_attempts: int = MAX_POLL_ATTEMPTS,
    ceiling: float = POLL_CEILING,
) -> DiscoveryResult:
    rid = ctx.request_id
    planner = planner or depth_planner.plan
    depth, reason = planner(ctx.seed_url, requested_depth)
    logger.info("[%s] Crawl depth %d for %s (%s)", rid, depth, ctx.seed_url, reason)

    key = crawl_cache_key(ctx.seed_url, depth, ctx.max_pages)
    found = DiscoveredPages(ctx.seed_url)

    cached = _from_cache(ctx, key)
    if cached is not None:
        found.merge(cached.pages)
        if len(found):
            logger.info("[%s] Using cached crawl: %d pages", rid, len(found))
            return _result(ctx, depth, reason, found, False, True, cached.completed, cached.total)

    try:
        job_id = ctx.renderer.submit_crawl(ctx.seed_url, depth, ctx.max_pages)
    except requests.RequestException as e:
        raise ProtocolError(f"Crawl submission failed: {e}") from e
    logger.info("[%s] Crawl job %s submitted", rid, job_id)

    started = clock()
    attempts = 0
    outcome = TIMED_OUT
    completed = total = 0
    while attempts < max_attempts and clock() - started < ceiling:
        sleep(min(poll_interval, ceiling - (clock() - started)))
        attempts += 1
        remaining = ceiling - (clock() - started)
        try:
            status = ctx.renderer.poll_crawl(job_id, timeout=max(remaining, MIN_POLL_TIMEOUT))
        except (RendererError, requests.RequestException) as e:
            logger.warning("[%s] Poll %d/%d failed: %s", rid, attempts, max_attempts, e)
            continue

        completed, total = status.completed, status.total
        added = found.merge(status.pages)
        if added:
            listing, detail = found.classified()
            logger.info(
                "[%s] Discovered %d pages (%d listing, %d detail)",
                rid, len(found), len(listing), len(detail),
            )
        logger.debug("[%s] Poll %d/%d: %s %d/%d", rid, attempts, max_attempts, status.status, completed, total)

        if status.status == COMPLETED:
            outcome = COMPLETED
            ctx.cache.put(key, CRAWL, CrawlStatus(
                status=COMPLETED, pages=found.pages, completed=completed, total=total,
            ).model_dump())
            break
        if status.status == FAILED:
            outcome = FAILED
            break

    if outcome == COMPLETED:
        return _result(ctx, depth, reason, found, False, False, completed, total)

    if not len(found):
        if outcome == FAILED:
            raise ProtocolError("Crawl job failed before any page was discovered")
        raise CrawlTimeoutError(
            f"Crawl did not discover any pages within {ceiling:.0f}s ({attempts} polls)"
        )

    logger.warning(
        "[%s] Crawl %s after %d polls; continuing with %d discovered pages",
        rid, "failed" if outcome == FAILED else "timed out", attempts, len(found),
    )
    return _result(ctx, depth, reason, found, True, False, completed, total)
