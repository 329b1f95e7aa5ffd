# local_renderer.py
"""
In-process page renderer built on crawl4ai.

Crawl jobs run as a breadth-first crawl on a background thread so the
orchestrator can poll them exactly like the hosted API. Structured extraction
is delegated to llm_extractor.
"""
import asyncio
import logging
import threading
import uuid
from collections import deque
from typing import Dict, List, Optional, Set
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from crawl4ai import AsyncWebCrawler, CrawlerRunConfig

from errors import ProtocolError
from llm_extractor import extract_structured
from renderer import POLL_TIMEOUT, PageRenderer, SCRAPE_TIMEOUT_MS
from schema import CrawlStatus, PageDoc, ScrapedPage
from utils.url_normalizer import normalize_url

logger = logging.getLogger(__name__)


def _run_config(timeout_ms: int) -> CrawlerRunConfig:
    return CrawlerRunConfig(
        wait_until="networkidle",
        delay_before_return_html=2.0,
        scan_full_page=True,
        page_timeout=timeout_ms,
    )


def page_from_html(url: str, html: str, markdown: str) -> PageDoc:
    soup = BeautifulSoup(html or "", "html.parser")
    title = soup.title.get_text(" ", strip=True) if soup.title else ""
    meta = soup.find("meta", attrs={"name": "description"})
    description = (meta.get("content") or "").strip() if meta else ""
    return PageDoc(url=url, html=html or "", markdown=markdown or "", title=title, description=description)


def same_site_links(base_url: str, html: str) -> List[str]:
    domain = urlparse(base_url).netloc
    soup = BeautifulSoup(html or "", "html.parser")
    links = []
    for a in soup.find_all("a", href=True):
        norm = normalize_url(base_url, a["href"])
        if not norm:
            continue
        norm = norm.split("#")[0]
        if urlparse(norm).netloc == domain:
            links.append(norm)
    return links


class _CrawlJob:
    def __init__(self, seed_url: str, max_depth: int, max_pages: int):
        self.seed_url = seed_url
        self.max_depth = max_depth
        self.max_pages = max_pages
        self.status = "running"
        self.pages: List[PageDoc] = []
        self.lock = threading.Lock()

    def snapshot(self) -> CrawlStatus:
        with self.lock:
            return CrawlStatus(
                status=self.status,
                pages=list(self.pages),
                completed=len(self.pages),
                total=self.max_pages,
            )


async def _crawl_site_async(job: _CrawlJob) -> None:
    visited: Set[str] = set()
    queue = deque([(job.seed_url, 0)])

    async with AsyncWebCrawler() as crawler:
        while queue and len(visited) < job.max_pages:
            url, depth = queue.popleft()
            if url in visited or depth > job.max_depth:
                continue
            visited.add(url)
            try:
                logger.debug("[CRAWL] depth=%d :: %s", depth, url)
                res = await crawler.arun(url=url, config=_run_config(SCRAPE_TIMEOUT_MS))
                html = res.html or ""
                page = page_from_html(url, html, str(res.markdown or ""))
                with job.lock:
                    job.pages.append(page)
                for link in same_site_links(url, html):
                    if link not in visited:
                        queue.append((link, depth + 1))
            except (TimeoutError, RuntimeError, OSError) as e:
                logger.warning("[DEEP CRAWL ERROR] %s: %s", url, e)


def _run_job(job: _CrawlJob) -> None:
    try:
        asyncio.run(_crawl_site_async(job))
        status = "completed"
    except Exception as e:
        logger.error("Local crawl of %s failed: %s", job.seed_url, e)
        status = "failed"
    with job.lock:
        job.status = status


async def _scrape(url: str, timeout_ms: int):
    async with AsyncWebCrawler() as crawler:
        return await crawler.arun(url=url, config=_run_config(timeout_ms))


class LocalRenderer(PageRenderer):
    def __init__(self):
        self._jobs: Dict[str, _CrawlJob] = {}

    def submit_crawl(self, seed_url: str, max_depth: int, max_pages: int) -> str:
        job_id = uuid.uuid4().hex
        job = _CrawlJob(seed_url, max_depth, max_pages)
        self._jobs[job_id] = job
        threading.Thread(target=_run_job, args=(job,), daemon=True).start()
        logger.info("Local crawl job %s started for %s", job_id, seed_url)
        return job_id

    def poll_crawl(self, job_id: str, timeout: float = POLL_TIMEOUT) -> CrawlStatus:
        job = self._jobs.get(job_id)
        if job is None:
            raise ProtocolError(f"Unknown crawl job: {job_id}")
        return job.snapshot()

    def scrape_page(self, url, want_structured=False, schema=None, timeout_ms=SCRAPE_TIMEOUT_MS):
        try:
            res = asyncio.run(_scrape(url, timeout_ms))
        except (TimeoutError, RuntimeError, OSError) as e:
            raise ProtocolError(f"Local scrape failed for {url}: {e}") from e
        if not getattr(res, "success", True):
            raise ProtocolError(f"Local scrape failed for {url}: {getattr(res, 'error_message', '')}")

        page = page_from_html(url, res.html or "", str(res.markdown or ""))
        extracted: Optional[dict] = None
        if want_structured and schema:
            extracted = extract_structured(url, page.markdown or page.html, schema)
        return ScrapedPage(**page.model_dump(), extracted=extracted)
