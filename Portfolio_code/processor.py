# processor.py
"""
Per-page extraction engine.

Strategy order for one page:
    1. structured extraction through the renderer (cached)
    2. HTML selectors/patterns
    3. markdown/text patterns
    4. image-grid names
Listing pages that still yield fewer than three records have their links
harvested and followed.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import requests
from pydantic import ValidationError as PydanticValidationError

from cache import SCRAPE_DETAIL, SCRAPE_LISTING, SCRAPE_MARKDOWN
from classifier import DETAIL
from confidence import GLOBAL_FALLBACK_CONFIDENCE, score
from context import ScrapeContext
from dedupe import normalize_name
from domain_health import failure_kind
from errors import RendererError
from extraction_schemas import (
    LISTING_SCHEMA,
    SINGLE_COMPANY_SCHEMA,
    normalize_payload,
    parse_payload,
)
from field_filler import fill_missing_fields
from html_extractor import extract_from_html
from link_harvester import external_record, harvest_links
from renderer import SCRAPE_TIMEOUT_MS
from schema import InvestmentRecord, PageDoc, ScrapedPage, ValidationResult
from text_extractor import extract_from_text, extract_image_grid
from utils.investor import clean_investment_name

logger = logging.getLogger(__name__)

EXTERNAL_TIMEOUT_MS = 20000
HARVEST_BELOW = 3
GLOBAL_FALLBACK_LINKS = 10

METHOD_AI_DETAIL = "ai-detail"
METHOD_AI_LISTING = "ai-listing"
METHOD_HTML = "fallback-html"
METHOD_MARKDOWN = "fallback-markdown"
METHOD_IMAGE_GRID = "image-grid"
METHOD_HARVESTED_INTERNAL = "harvested-internal"
METHOD_HARVESTED_EXTERNAL = "harvested-external"
METHOD_GLOBAL_HARVEST = "global-fallback-harvest"
METHOD_GLOBAL_TITLE = "global-fallback-title"

# errors a single renderer call may raise without aborting the page
PAGE_ERRORS = (RendererError, requests.RequestException)

Scored = Tuple[InvestmentRecord, ValidationResult]


@dataclass
class PageResult:
    url: str
    scored: List[Scored] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.scored)


def _has_content(page: Optional[PageDoc]) -> bool:
    return bool(page and (page.html or page.markdown))


def _named(records: List[InvestmentRecord]) -> List[InvestmentRecord]:
    return [r for r in records if r.name and r.name.strip()]


def _tag(records: List[InvestmentRecord], method: str) -> List[Scored]:
    return [(r, score(r, method)) for r in records]


# --------------------------------------------------
# Renderer access (cache + domain health)
# --------------------------------------------------
def render(ctx: ScrapeContext, url: str, want_structured: bool = False,
           schema=None, timeout_ms: int = SCRAPE_TIMEOUT_MS) -> ScrapedPage:
    try:
        page = ctx.renderer.scrape_page(
            url, want_structured=want_structured, schema=schema, timeout_ms=timeout_ms,
        )
    except PAGE_ERRORS as e:
        ctx.health.record_failure(url, failure_kind(e))
        raise
    ctx.health.record_success(url)
    return page


def cached_scrape(ctx: ScrapeContext, url: str, content_type: str, want_structured: bool = False,
                  schema=None, timeout_ms: int = SCRAPE_TIMEOUT_MS) -> ScrapedPage:
    cached = ctx.cache.get(url, content_type)
    if cached is not None:
        try:
            page = ScrapedPage.model_validate(cached)
            ctx.stats.hit()
            return page
        except PydanticValidationError as e:
            logger.warning("[%s] Ignoring malformed cache entry for %s: %s", ctx.request_id, url, e)

    ctx.stats.miss()
    page = render(ctx, url, want_structured=want_structured, schema=schema, timeout_ms=timeout_ms)
    ctx.cache.put(url, content_type, page.model_dump())
    return page


# --------------------------------------------------
# Tiers
# --------------------------------------------------
def heuristic_records(page: PageDoc, investor_name: str = "") -> Tuple[List[InvestmentRecord], str]:
    """Tiers 2-4. Returns (records, method) of the first tier that names a company."""
    records = _named(extract_from_html(page, investor_name))
    if records:
        return records, METHOD_HTML
    records = _named(extract_from_text(page, investor_name))
    if records:
        return records, METHOD_MARKDOWN
    records = _named(extract_image_grid(page.markdown, page.url, investor_name))
    return records, METHOD_IMAGE_GRID


def apply_floor(records: List[Scored], page: PageDoc, investor_name: str = "") -> List[Scored]:
    """Append image-grid names the winning tier missed."""
    if not page.markdown:
        return records
    seen = {normalize_name(r.name) for r, _ in records}
    extra = []
    for r in extract_image_grid(page.markdown, page.url, investor_name):
        key = normalize_name(r.name)
        if r.name and key not in seen:
            seen.add(key)
            extra.append(r)
    if extra and records:
        logger.info("Image grid added %d names missed on %s", len(extra), page.url)
    return records + _tag(extra, METHOD_IMAGE_GRID)


def _fallback_doc(ctx: ScrapeContext, url: str, scraped: Optional[ScrapedPage],
                  crawl_page: Optional[PageDoc]) -> Optional[PageDoc]:
    if _has_content(scraped):
        return scraped
    if _has_content(crawl_page):
        return crawl_page
    if ctx.health.should_skip(url):
        return None
    try:
        page = cached_scrape(ctx, url, SCRAPE_MARKDOWN)
    except PAGE_ERRORS as e:
        logger.error("[%s] Failed to fetch markdown/HTML for %s: %s", ctx.request_id, url, e)
        return None
    return page if _has_content(page) else None


# --------------------------------------------------
# Link harvesting
# --------------------------------------------------
def _harvest_internal(ctx: ScrapeContext, listing_url: str, detail_url: str) -> List[Scored]:
    page = cached_scrape(ctx, detail_url, SCRAPE_DETAIL, want_structured=True, schema=SINGLE_COMPANY_SCHEMA)
    records = normalize_payload(parse_payload(page.extracted), detail_url, ctx.investor_name)
    if not records and _has_content(page):
        records, _ = heuristic_records(page.model_copy(update={"url": detail_url}), ctx.investor_name)
    scored = []
    for r in records:
        r = fill_missing_fields(r, page.markdown)
        r.source_url = listing_url
        r.portfolio_url = detail_url
        scored.append((r, score(r, METHOD_HARVESTED_INTERNAL)))
        logger.info("[%s] Harvested internal: %s from %s", ctx.request_id, r.name, detail_url)
    return scored


def _harvest_external(ctx: ScrapeContext, listing_url: str, site_url: str) -> List[Scored]:
    page = render(ctx, site_url, timeout_ms=EXTERNAL_TIMEOUT_MS)
    record = external_record(page, site_url, listing_url, ctx.investor_name)
    if record is None:
        return []
    logger.info("[%s] Harvested external: %s from %s", ctx.request_id, record.name, site_url)
    return [(record, score(record, METHOD_HARVESTED_EXTERNAL))]


def harvest(ctx: ScrapeContext, listing_url: str, html: str) -> List[Scored]:
    links = harvest_links(html, listing_url, ctx.max_pages)
    scored: List[Scored] = []
    jobs = [(u, _harvest_internal) for u in links.internal] + [(u, _harvest_external) for u in links.external]
    for url, follow in jobs:
        if ctx.health.should_skip(url):
            logger.warning("[%s] Skipping unhealthy domain for %s", ctx.request_id, url)
            continue
        try:
            scored.extend(follow(ctx, listing_url, url))
        except PAGE_ERRORS as e:
            logger.error("[%s] Failed to extract harvested link %s: %s", ctx.request_id, url, e)
    return scored


# --------------------------------------------------
# Main entry
# --------------------------------------------------
def extract_page(ctx: ScrapeContext, url: str, kind: str,
                 crawl_page: Optional[PageDoc] = None) -> PageResult:
    rid = ctx.request_id
    is_detail = kind == DETAIL
    result = PageResult(url=url)

    scraped: Optional[ScrapedPage] = None
    if not ctx.health.should_skip(url):
        try:
            scraped = cached_scrape(
                ctx, url,
                SCRAPE_DETAIL if is_detail else SCRAPE_LISTING,
                want_structured=True,
                schema=SINGLE_COMPANY_SCHEMA if is_detail else LISTING_SCHEMA,
            )
        except PAGE_ERRORS as e:
            logger.error("[%s] Structured extraction failed for %s: %s", rid, url, e)
        except Exception as e:
            # any other failure still leaves the heuristic tiers to run
            logger.error("[%s] Structured extraction error for %s: %s", rid, url, e, exc_info=True)
    else:
        logger.warning("[%s] Domain unhealthy, using crawl payload only for %s", rid, url)

    # 1. structured
    records = normalize_payload(parse_payload(scraped.extracted if scraped else None), url, ctx.investor_name)
    doc: Optional[PageDoc] = scraped if _has_content(scraped) else crawl_page
    if records:
        fill_text = doc.markdown if (doc and is_detail) else ""
        records = [fill_missing_fields(r, fill_text) for r in records]
        result.scored = _tag(records, METHOD_AI_DETAIL if is_detail else METHOD_AI_LISTING)
        logger.info("[%s] Structured extraction: %d records from %s", rid, len(records), url)
    else:
        # 2-4. heuristics
        doc = _fallback_doc(ctx, url, scraped, crawl_page)
        if doc is None:
            logger.error("[%s] No markdown or HTML available for %s", rid, url)
            return result
        records, method = heuristic_records(doc.model_copy(update={"url": url}), ctx.investor_name)
        if is_detail:
            records = [fill_missing_fields(r, doc.markdown) for r in records]
        result.scored = _tag(records, method)
        logger.info("[%s] Fallback extraction (%s): %d records from %s", rid, method, len(records), url)

    if is_detail or doc is None:
        return result

    result.scored = apply_floor(result.scored, doc.model_copy(update={"url": url}), ctx.investor_name)
    if len(result.scored) < HARVEST_BELOW and doc.html:
        logger.info("[%s] Listing page returned only %d records, harvesting links", rid, len(result.scored))
        result.scored.extend(harvest(ctx, url, doc.html))
    return result


def global_fallback(ctx: ScrapeContext) -> List[Scored]:
    """Last resort when the whole site produced nothing."""
    seed = ctx.seed_url
    rid = ctx.request_id
    logger.warning("[%s] Zero investments extracted, running global fallback on %s", rid, seed)
    try:
        page = render(ctx, seed)
    except PAGE_ERRORS as e:
        logger.error("[%s] Global fallback fetch failed: %s", rid, e)
        return []

    scored: List[Scored] = []
    links = harvest_links(page.html, seed, ctx.max_pages)
    for link in (links.internal + links.external)[:GLOBAL_FALLBACK_LINKS]:
        try:
            linked = render(ctx, link, timeout_ms=EXTERNAL_TIMEOUT_MS)
        except PAGE_ERRORS as e:
            logger.error("[%s] Global fallback link error for %s: %s", rid, link, e)
            continue
        records, _ = heuristic_records(linked.model_copy(update={"url": link}), ctx.investor_name)
        for r in records:
            r.source_url = seed
            r.portfolio_url = link
            scored.append((r, score(r, METHOD_GLOBAL_HARVEST)))
    if scored:
        return scored

    if not page.title:
        return []
    record = InvestmentRecord(
        name=clean_investment_name(page.title, ctx.investor_name),
        description=page.description or None,
        source_url=seed,
        portfolio_url=seed,
    )
    if not record.name:
        return []
    validation = score(record, METHOD_GLOBAL_TITLE).model_copy(update={"confidence": GLOBAL_FALLBACK_CONFIDENCE})
    logger.info("[%s] Created minimal entry from page title: %s", rid, record.name)
    return [(record, validation)]
