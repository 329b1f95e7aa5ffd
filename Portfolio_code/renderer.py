# renderer.py
"""
Page renderer boundary.

PageRenderer is the abstract collaborator the pipeline drives. FirecrawlRenderer
talks to the hosted crawl/scrape API; local_renderer.LocalRenderer runs crawl4ai
in-process when no API key is configured.
"""
import os
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from errors import ProtocolError, RateLimitError, error_for_status
from schema import CrawlStatus, PageDoc, ScrapedPage

load_dotenv()

logger = logging.getLogger(__name__)

FIRECRAWL_API_KEY = os.getenv("FIRECRAWL_API_KEY")
FIRECRAWL_API_URL = os.getenv("FIRECRAWL_API_URL", "https://api.firecrawl.dev/v1")

SCRAPE_TIMEOUT_MS = 25000
WAIT_FOR_MS = 2000
REQUEST_TIMEOUT = 30
POLL_TIMEOUT = 15
MIN_POLL_TIMEOUT = 1


class PageRenderer(ABC):
    @abstractmethod
    def submit_crawl(self, seed_url: str, max_depth: int, max_pages: int) -> str:
        """Start an asynchronous crawl and return its job id."""

    @abstractmethod
    def poll_crawl(self, job_id: str, timeout: float = POLL_TIMEOUT) -> CrawlStatus:
        """Return the job status with every page rendered so far, within timeout seconds."""

    @abstractmethod
    def scrape_page(
        self,
        url: str,
        want_structured: bool = False,
        schema: Optional[Dict[str, Any]] = None,
        timeout_ms: int = SCRAPE_TIMEOUT_MS,
    ) -> ScrapedPage:
        """Fetch one page, optionally with schema-guided structured extraction."""


def page_from_payload(item: Dict[str, Any], fallback_url: str = "") -> PageDoc:
    """Flatten a {markdown, html, metadata{...}} renderer page."""
    metadata = item.get("metadata") or {}
    return PageDoc(
        url=metadata.get("url") or metadata.get("sourceURL") or fallback_url,
        html=item.get("html") or "",
        markdown=item.get("markdown") or "",
        title=metadata.get("title") or "",
        description=metadata.get("description") or "",
    )


def status_from_payload(payload: Dict[str, Any]) -> CrawlStatus:
    pages = []
    for item in payload.get("data") or []:
        if not isinstance(item, dict):
            continue
        page = page_from_payload(item)
        if page.url:
            pages.append(page)
    return CrawlStatus(
        status=payload.get("status") or "running",
        pages=pages,
        completed=payload.get("completed") or 0,
        total=payload.get("total") or 0,
    )


class FirecrawlRenderer(PageRenderer):
    def __init__(self, api_key: Optional[str] = None, base_url: str = FIRECRAWL_API_URL):
        self.api_key = api_key or FIRECRAWL_API_KEY
        if not self.api_key:
            raise RuntimeError("FIRECRAWL_API_KEY missing in .env")
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, body: Optional[Dict] = None,
                 timeout: float = REQUEST_TIMEOUT, retries: bool = True) -> Dict[str, Any]:
        send = self._send_with_retry if retries else self._send
        try:
            return send(method, path, body, timeout)
        except requests.RequestException as e:
            logger.error("Renderer %s %s failed: %s", method, path, e)
            raise ProtocolError(f"Renderer request failed: {e}") from e

    @retry(
        retry=retry_if_exception_type((RateLimitError, requests.ConnectionError, requests.Timeout)),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _send_with_retry(self, method, path, body, timeout):
        return self._send(method, path, body, timeout)

    def _send(self, method: str, path: str, body: Optional[Dict], timeout: float) -> Dict[str, Any]:
        resp = requests.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            json=body,
            timeout=timeout,
        )
        if resp.status_code != 200:
            logger.error("Renderer %s %s failed: HTTP %d", method, path, resp.status_code)
            raise error_for_status(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON from renderer: {e}") from e
        if not isinstance(data, dict):
            raise ProtocolError("Renderer returned a non-object payload")
        return data

    def submit_crawl(self, seed_url: str, max_depth: int, max_pages: int) -> str:
        data = self._request("POST", "/crawl", {
            "url": seed_url,
            "limit": max_pages,
            "maxDepth": max_depth,
            "scrapeOptions": {
                "formats": ["markdown", "html"],
                "onlyMainContent": True,
                "waitFor": WAIT_FOR_MS,
                "timeout": SCRAPE_TIMEOUT_MS,
            },
        })
        job_id = data.get("id")
        if not job_id:
            raise ProtocolError("Invalid response from renderer - no job ID received")
        logger.info("Crawl job initiated with ID: %s", job_id)
        return job_id

    def poll_crawl(self, job_id: str, timeout: float = POLL_TIMEOUT) -> CrawlStatus:
        # single attempt; the poll loop owns retries and the wall-clock ceiling
        timeout = max(MIN_POLL_TIMEOUT, min(timeout, POLL_TIMEOUT))
        data = self._request("GET", f"/crawl/{job_id}", timeout=timeout, retries=False)
        return status_from_payload(data)

    def scrape_page(self, url, want_structured=False, schema=None, timeout_ms=SCRAPE_TIMEOUT_MS):
        formats = ["markdown", "html"]
        body: Dict[str, Any] = {
            "url": url,
            "onlyMainContent": True,
            "waitFor": WAIT_FOR_MS if timeout_ms >= SCRAPE_TIMEOUT_MS else 1500,
            "timeout": timeout_ms,
        }
        if want_structured and schema:
            formats = ["extract"] + formats
            body["extract"] = {"schema": schema}
        body["formats"] = formats

        data = self._request("POST", "/scrape", body, timeout=timeout_ms / 1000 + 5)
        if data.get("success") is False:
            raise ProtocolError(f"Scrape unsuccessful for {url}: {data.get('code') or data.get('error')}")

        inner = data.get("data") if isinstance(data.get("data"), dict) else data
        page = page_from_payload(inner, fallback_url=url)
        extracted = inner.get("extract")
        return ScrapedPage(
            **page.model_dump(),
            extracted=extracted if isinstance(extracted, dict) else None,
        )


def build_renderer() -> PageRenderer:
    """Hosted renderer when an API key is configured, local crawl4ai otherwise."""
    if FIRECRAWL_API_KEY:
        return FirecrawlRenderer()
    from local_renderer import LocalRenderer
    logger.info("FIRECRAWL_API_KEY not set - using local crawl4ai renderer")
    return LocalRenderer()
