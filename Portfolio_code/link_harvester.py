# link_harvester.py
"""
Under-yielding listing pages often still link to every company: internally to
per-company detail pages, or externally to the companies' own sites.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from bs4 import BeautifulSoup

from classifier import is_collection_root, is_detail_page
from schema import InvestmentRecord, PageDoc
from utils.investor import clean_investment_name
from utils.url_normalizer import normalize_url, origin, strip_query

logger = logging.getLogger(__name__)

NAV_WORDS_RE = re.compile(r"(home|about|contact|news|blog|login|sign|privacy|terms)", re.I)
MAX_EXTERNAL_NAME_LEN = 60
MIN_DESCRIPTION_LINE = 50
MAX_DESCRIPTION_LINE = 300


@dataclass
class HarvestResult:
    internal: List[str] = field(default_factory=list)
    external: List[str] = field(default_factory=list)

    def __len__(self):
        return len(self.internal) + len(self.external)


def looks_like_company_link_text(text: str) -> bool:
    words = text.split()
    if not 2 <= len(words) <= 4 or len(text) >= MAX_EXTERNAL_NAME_LEN:
        return False
    if not all(w[:1].isupper() for w in words):
        return False
    return not NAV_WORDS_RE.search(text)


def harvest_links(html: str, base_url: str, max_pages: int = 50) -> HarvestResult:
    result = HarvestResult()
    if not html:
        return result

    base_origin = origin(base_url)
    soup = BeautifulSoup(html, "html.parser")
    for a in soup.find_all("a", href=True):
        absolute = normalize_url(base_url, a["href"])
        if not absolute.startswith(("http://", "https://")):
            continue

        clean = strip_query(absolute)
        if origin(absolute) == base_origin:
            if is_detail_page(clean) and not is_collection_root(clean) and clean not in result.internal:
                result.internal.append(clean)
        else:
            text = a.get_text(" ", strip=True)
            if looks_like_company_link_text(text) and clean not in result.external:
                result.external.append(clean)

        if len(result) >= max_pages:
            break

    result.internal = result.internal[:max_pages]
    result.external = result.external[:max_pages // 2]
    logger.info(
        "Harvested %d internal and %d external links from %s",
        len(result.internal), len(result.external), base_url,
    )
    return result


def external_record(page: PageDoc, website_url: str, listing_url: str,
                    investor_name: str = "") -> Optional[InvestmentRecord]:
    """Name from h1/title and a short description from a company's own homepage."""
    soup = BeautifulSoup(page.html or "", "html.parser")
    h1 = soup.find("h1")
    name = (h1.get_text(" ", strip=True) if h1 else "") or page.title
    name = clean_investment_name(name, investor_name)
    if not name:
        return None

    description = page.description
    if not description:
        for line in (page.markdown or "").split("\n"):
            line = line.strip()
            if MIN_DESCRIPTION_LINE < len(line) < MAX_DESCRIPTION_LINE:
                description = line
                break

    return InvestmentRecord(
        name=name,
        website=website_url,
        description=description or None,
        source_url=listing_url,
        portfolio_url=listing_url,
    )
