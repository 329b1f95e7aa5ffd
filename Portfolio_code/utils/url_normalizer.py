# utils/url_normalizer.py
from urllib.parse import urljoin, urlparse

SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")


def normalize_url(base: str, href: str) -> str:
    """
    Normalize href relative to base. Return empty string when invalid.
    """
    if not href:
        return ""
    href = href.strip()
    if href.lower().startswith(SKIP_SCHEMES) or href.startswith("#"):
        return ""
    if href.startswith("//"):
        href = "https:" + href
    if href.startswith("http://") or href.startswith("https://"):
        return href
    try:
        return urljoin(base, href)
    except ValueError:
        return ""


def strip_query(url: str) -> str:
    """Drop fragment and query string."""
    return url.split("#")[0].split("?")[0]


def origin(url: str) -> str:
    try:
        parsed = urlparse(url)
    except ValueError:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def not_same_site(page_url: str):
    """Predicate rejecting values that point back at page_url's own host."""
    host = urlparse(page_url).netloc.lower().replace("www.", "")

    def accept(value: str) -> bool:
        return not host or host not in value.lower()
    return accept
