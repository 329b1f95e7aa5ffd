# depth_planner.py
"""
Adaptive crawl depth: one cheap probe of the seed page decides whether the
billed crawl should go shallow (dense portfolio link lists) or deeper (few
visible links, content probably behind JS or sub-pages).
"""
import logging
from typing import Callable, Optional, Tuple

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

MIN_DEPTH = 1
MAX_DEPTH = 5
DENSE_LINK_COUNT = 10
SPARSE_LINK_COUNT = 3
PROBE_TIMEOUT = 10
LINK_KEYWORDS = ("portfolio", "investment", "company")

PROBE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; PortfolioScraper/1.0)",
    "Accept": "text/html,application/xhtml+xml",
}


def fetch_seed_html(url: str) -> str:
    resp = requests.get(url, headers=PROBE_HEADERS, timeout=PROBE_TIMEOUT)
    resp.raise_for_status()
    return resp.text


def count_investment_links(html: str) -> int:
    soup = BeautifulSoup(html or "", "html.parser")
    count = 0
    for a in soup.find_all("a", href=True):
        href = a["href"].lower()
        if any(k in href for k in LINK_KEYWORDS):
            count += 1
    return count


def _clamp(depth: int) -> int:
    return max(MIN_DEPTH, min(MAX_DEPTH, depth))


def depth_for_link_count(link_count: int, requested_depth: int) -> Tuple[int, str]:
    if link_count >= DENSE_LINK_COUNT:
        return _clamp(min(requested_depth, 2)), f"dense site ({link_count} links), going shallow"
    if link_count < SPARSE_LINK_COUNT:
        return _clamp(min(requested_depth + 2, MAX_DEPTH)), f"sparse site ({link_count} links), going deeper"
    return _clamp(requested_depth), f"{link_count} links, keeping requested depth"


def plan(
    seed_url: str,
    requested_depth: int,
    fetch_html: Optional[Callable[[str], str]] = None,
) -> Tuple[int, str]:
    """Return (final_depth, reason). Exactly one fetch of the seed URL."""
    fetch_html = fetch_html or fetch_seed_html
    try:
        html = fetch_html(seed_url)
    except (requests.RequestException, ValueError) as e:
        logger.warning("Depth probe failed for %s: %s", seed_url, e)
        return _clamp(requested_depth), "probe-failed"

    link_count = count_investment_links(html)
    final_depth, reason = depth_for_link_count(link_count, requested_depth)
    logger.info("Adaptive depth for %s: %d -> %d (%s)", seed_url, requested_depth, final_depth, reason)
    return final_depth, reason
