# classifier.py
"""
URL-shape page classification. No fetching: crawls surface many unrelated
pages (news, about, contact) and only portfolio-shaped paths reach extraction.
"""
import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlparse

LISTING = "listing"
DETAIL = "detail"

DETAIL_PATH_RE = re.compile(r"/(portfolio|investments?|companies?)/[^/\s#?]+/?$", re.I)
COLLECTION_ROOT_RE = re.compile(r"^/(portfolio|investments)/?$", re.I)
INVESTMENT_URL_MARKERS = ("/investment", "/portfolio", "/company", "/companies")


def _path(url: str) -> str:
    try:
        return urlparse(url).path or "/"
    except ValueError:
        return ""


def _same_url(a: str, b: str) -> bool:
    return a.rstrip("/") == b.rstrip("/")


def is_detail_page(url: str) -> bool:
    return bool(DETAIL_PATH_RE.search(_path(url)))


def is_collection_root(url: str) -> bool:
    return bool(COLLECTION_ROOT_RE.match(_path(url)))


def classify(url: str, seed_url: str) -> Optional[str]:
    """Return LISTING, DETAIL, or None when the URL is not an investment page."""
    if _same_url(url, seed_url):
        return LISTING
    if is_collection_root(url):
        return LISTING
    if is_detail_page(url):
        return DETAIL
    return None


def is_investment_url(url: str, seed_url: str) -> bool:
    if _same_url(url, seed_url):
        return True
    lowered = url.lower()
    return any(marker in lowered for marker in INVESTMENT_URL_MARKERS)


def partition(urls: Iterable[str], seed_url: str) -> Tuple[List[str], List[str]]:
    """Split URLs into (listing_pages, detail_pages), preserving input order."""
    listing, detail = [], []
    for url in urls:
        kind = classify(url, seed_url)
        if kind == LISTING:
            listing.append(url)
        elif kind == DETAIL:
            detail.append(url)
    return listing, detail
