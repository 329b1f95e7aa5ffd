# pipeline.py
import argparse
import ipaddress
import json
import logging
import os
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv

import db
import orchestrator
from cache import ResponseCache
from classifier import classify
from confidence import LOW_CONFIDENCE
from context import ScrapeContext
from dedupe import dedupe
from errors import InternalError, ScrapeError, ValidationError
from processor import PageResult, Scored, extract_page, global_fallback
from renderer import PageRenderer, build_renderer
from schema import DiscoveryResult, ExtractionQuality, InvestmentRecord, ScrapeResult
from utils.investor import extract_investor_name
from utils.text import clean_record

load_dotenv()

logger = logging.getLogger(__name__)

EXTRACTION_WORKERS = int(os.getenv("EXTRACTION_WORKERS", "1"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

MAX_URL_LENGTH = 2048
DEFAULT_DEPTH = 2
DEFAULT_MAX_PAGES = 50

BLOCKED_HOSTS = {
    "metadata.google.internal",
    "metadata.google.internal.",
    "localhost",
}


def validate_seed_url(url: str) -> str:
    """Reject malformed or internal-network seed URLs before any external call."""
    if not url or not isinstance(url, str):
        raise ValidationError("URL is required")
    url = url.strip()
    if len(url) > MAX_URL_LENGTH:
        raise ValidationError(f"URL too long ({len(url)} chars)")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValidationError(f"Invalid URL: {e}") from e

    if parsed.scheme not in ("http", "https"):
        raise ValidationError("Only http and https URLs are supported")

    hostname = parsed.hostname
    if not hostname:
        raise ValidationError("URL has no host")

    if hostname.lower() in BLOCKED_HOSTS:
        raise ValidationError(f"Blocked host: {hostname}")

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return url
    if ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved:
        raise ValidationError(f"URL points at a non-public IP: {ip}")
    return url


def _default_cache() -> ResponseCache:
    if db.DB_DSN:
        return ResponseCache(db.PostgresCacheStore())
    return ResponseCache()


def _extraction_targets(discovery: DiscoveryResult) -> List[Tuple[str, str]]:
    targets = []
    for url in discovery.discovered_urls:
        kind = classify(url, discovery.seed_url)
        if kind:
            targets.append((url, kind))
    return targets


def _extract_safely(ctx: ScrapeContext, url: str, kind: str, discovery: DiscoveryResult) -> PageResult:
    try:
        result = extract_page(ctx, url, kind, discovery.pages.get(url))
    except Exception as e:
        logger.error("[%s] Error extracting from %s: %s", ctx.request_id, url, e, exc_info=True)
        result = PageResult(url=url)
    if result.ok:
        ctx.stats.page_succeeded()
    else:
        ctx.stats.page_failed()
    return result


def _extract_all(ctx: ScrapeContext, discovery: DiscoveryResult, workers: int) -> List[PageResult]:
    targets = _extraction_targets(discovery)
    logger.info("[%s] Extracting %d pages with %d worker(s)", ctx.request_id, len(targets), workers)

    def run(target):
        url, kind = target
        return _extract_safely(ctx, url, kind, discovery)

    if workers <= 1:
        return [run(t) for t in targets]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(run, targets))


def _quality(scored: List[Scored]) -> ExtractionQuality:
    if not scored:
        return ExtractionQuality()
    breakdown: Dict[str, int] = {}
    for _, v in scored:
        breakdown[v.method] = breakdown.get(v.method, 0) + 1
    confidences = [v.confidence for _, v in scored]
    return ExtractionQuality(
        average_confidence=round(sum(confidences) / len(confidences)),
        method_breakdown=breakdown,
        incomplete_investments=sum(1 for c in confidences if c < LOW_CONFIDENCE),
    )


def history_record(seed_url: str, result: ScrapeResult) -> dict:
    return {
        "url": seed_url,
        "request_id": result.request_id,
        "pages_crawled": result.crawl_stats.successful_pages + result.crawl_stats.failed_pages,
        "investments": [r.model_dump(by_alias=True) for r in result.investments],
    }


def _emit_history(sink: Callable[[dict], None], record: dict) -> None:
    def send():
        try:
            sink(record)
        except Exception as e:
            logger.error("History sink failed for %s: %s", record.get("url"), e)

    threading.Thread(target=send, daemon=True).start()


def run_scrape(
    seed_url: str,
    depth: int = DEFAULT_DEPTH,
    max_pages: int = DEFAULT_MAX_PAGES,
    renderer: Optional[PageRenderer] = None,
    cache: Optional[ResponseCache] = None,
    max_workers: Optional[int] = None,
    history_sink: Optional[Callable[[dict], None]] = None,
    planner=None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> ScrapeResult:
    seed_url = validate_seed_url(seed_url)
    if not isinstance(depth, int) or depth < 1:
        raise ValidationError("depth must be a positive integer")
    if not isinstance(max_pages, int) or max_pages < 1:
        raise ValidationError("max_pages must be a positive integer")

    try:
        return _run(seed_url, depth, max_pages, renderer, cache, max_workers,
                    history_sink, planner, sleep, clock)
    except ScrapeError:
        raise
    except Exception as e:
        logger.error("Unexpected failure scraping %s: %s", seed_url, e, exc_info=True)
        raise InternalError(f"Unexpected error: {e}") from e


def _run(seed_url, depth, max_pages, renderer, cache, max_workers,
         history_sink, planner, sleep, clock) -> ScrapeResult:
    ctx = ScrapeContext(
        renderer=renderer or build_renderer(),
        cache=cache or _default_cache(),
        seed_url=seed_url,
        max_pages=max_pages,
        investor_name=extract_investor_name(seed_url),
    )
    rid = ctx.request_id
    logger.info("[%s] Scraping %s (depth %d, max %d pages)", rid, seed_url, depth, max_pages)

    # 1. Discover
    discovery = orchestrator.discover(ctx, depth, planner=planner, sleep=sleep, clock=clock)

    # 2. Extract
    workers = max_workers or EXTRACTION_WORKERS
    page_results = _extract_all(ctx, discovery, workers)
    scored: List[Scored] = [s for r in page_results for s in r.scored]
    if not scored:
        scored = global_fallback(ctx)

    for record, validation in scored:
        if validation.confidence < LOW_CONFIDENCE:
            logger.debug(
                "[%s] Low confidence %d%% for %s (missing: %s)",
                rid, validation.confidence, record.name, ", ".join(validation.missing),
            )

    # 3. Clean + dedupe
    cleaned: List[InvestmentRecord] = []
    for record, _ in scored:
        record = clean_record(record, ctx.investor_name)
        if record.name:
            cleaned.append(record)
        else:
            logger.warning("[%s] Dropping record with empty name from %s", rid, record.source_url)
    investments = dedupe(cleaned)

    quality = _quality(scored)
    stats = ctx.stats.to_crawl_stats(
        completed=discovery.completed or len(discovery.discovered_urls),
        total=discovery.total or len(discovery.discovered_urls),
    )
    logger.info(
        "[%s] Done: %d investments, %d pages ok, %d failed, cache %d hits / %d misses, avg confidence %d%%",
        rid, len(investments), stats.successful_pages, stats.failed_pages,
        stats.cache_hits, stats.cache_misses, quality.average_confidence,
    )

    result = ScrapeResult(
        success=True,
        partial=discovery.partial,
        request_id=rid,
        investments=investments,
        crawl_stats=stats,
        extraction_quality=quality,
        crawl_depth=discovery.final_depth,
    )

    if history_sink is not None:
        _emit_history(history_sink, history_record(seed_url, result))
    return result


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Scrape an investment firm's portfolio pages")
    parser.add_argument("seed_url")
    parser.add_argument("depth", nargs="?", type=int, default=DEFAULT_DEPTH)
    parser.add_argument("max_pages", nargs="?", type=int, default=DEFAULT_MAX_PAGES)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = run_scrape(
            args.seed_url,
            depth=args.depth,
            max_pages=args.max_pages,
        )
    except ScrapeError as e:
        logger.error("Scrape failed (%s): %s", type(e).__name__, e)
        print(json.dumps({"success": False, "error": str(e), "errorType": type(e).__name__}))
        return 1

    # daemon threads do not outlive the CLI process
    db.insert_scrape_history(history_record(args.seed_url, result))
    print(json.dumps(result.model_dump(by_alias=True), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
