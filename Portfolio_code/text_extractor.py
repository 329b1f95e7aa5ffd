# text_extractor.py
"""
Tier 3 (markdown / plain-text patterns) and tier 4 (image grids).
"""
import logging
import re
from typing import List

from classifier import is_detail_page
from patterns import (
    CONTEXT_DATE_RE,
    CONTEXT_DESCRIPTION_RE,
    CONTEXT_INDUSTRY_RE,
    HEADING_PATTERNS,
    IMAGE_GRID_RE,
    NON_COMPANY_PATTERNS,
    TEXT_DESCRIPTION_RE,
    TEXT_RULES,
    first_match,
)
from schema import InvestmentRecord, PageDoc
from utils.investor import clean_investment_name, title_from_slug

logger = logging.getLogger(__name__)

MAX_NAME_WORDS = 5
MIN_CAPITALIZED_SHARE = 0.5
ENOUGH_NAMES = 2
CONTEXT_BEFORE = 100
CONTEXT_AFTER = 500
MIN_IMAGE_GRID_ITEMS = 5

TITLE_SEPARATOR_RE = re.compile(r"\s*[-|–—]\s*.*")
DETAIL_FIELDS = ["industry", "ceo", "website", "location", "ownership", "investment_role", "status"]


def has_proper_capitalization(name: str) -> bool:
    words = name.split()
    if not words:
        return False
    capitalized = [w for w in words if w[:1].isupper()]
    return len(capitalized) / len(words) >= MIN_CAPITALIZED_SHARE


def is_company_name_candidate(name: str) -> bool:
    if len(name) < 3 or len(name) > 80:
        return False
    if any(p.search(name) for p in NON_COMPANY_PATTERNS):
        logger.debug("Filtered out non-company text: %r", name)
        return False
    if len(name.split()) > MAX_NAME_WORDS:
        return False
    return has_proper_capitalization(name)


def find_name_candidates(text: str) -> List[str]:
    """Heading-like phrases, in order, stopping once a pattern family has produced enough."""
    names: List[str] = []
    for pattern in HEADING_PATTERNS:
        for m in pattern.finditer(text):
            name = m.group(1).strip()
            if name not in names and is_company_name_candidate(name):
                names.append(name)
        if len(names) > ENOUGH_NAMES:
            break
    return names


def _detail_record(page: PageDoc, text: str, investor_name: str) -> List[InvestmentRecord]:
    name = title_from_slug(page.url) or clean_investment_name(page.title, investor_name)
    if not name:
        return []
    record = InvestmentRecord(name=name, source_url=page.url, portfolio_url=page.url)
    for field in DETAIL_FIELDS:
        setattr(record, field, first_match(text, TEXT_RULES[field]))
    year = first_match(text, TEXT_RULES["year"])
    record.year = year
    record.date = year

    if page.description:
        record.description = page.description
    else:
        m = TEXT_DESCRIPTION_RE.search(text)
        if m:
            record.description = m.group(1).strip()
    return [record]


def _listing_records(page: PageDoc, text: str) -> List[InvestmentRecord]:
    records = []
    for name in find_name_candidates(text):
        record = InvestmentRecord(name=name, source_url=page.url, portfolio_url=page.url)
        idx = text.find(name)
        if idx >= 0:
            context = text[max(0, idx - CONTEXT_BEFORE):idx + CONTEXT_AFTER]
            m = CONTEXT_INDUSTRY_RE.search(context)
            if m:
                record.industry = m.group(1).strip()
            m = CONTEXT_DATE_RE.search(context)
            if m:
                record.date = m.group(1).strip()
            m = CONTEXT_DESCRIPTION_RE.search(context)
            if m:
                record.description = m.group(1).strip()
        if not record.description and page.description:
            record.description = page.description
        records.append(record)

    if not records and page.title:
        title_name = TITLE_SEPARATOR_RE.sub("", page.title).strip()
        if title_name:
            logger.debug("Creating basic entry from page title for %s", page.url)
            records.append(InvestmentRecord(
                name=title_name,
                description=page.description or None,
                source_url=page.url,
                portfolio_url=page.url,
            ))
    return records


def extract_from_text(page: PageDoc, investor_name: str = "") -> List[InvestmentRecord]:
    text = page.markdown or page.html
    if not text:
        return []
    if is_detail_page(page.url):
        return _detail_record(page, text, investor_name)
    return _listing_records(page, text)


def extract_image_grid(markdown: str, page_url: str, investor_name: str = "") -> List[InvestmentRecord]:
    """Logo walls: "![](logo.png)\\n\\nCompany Name" repeated at least five times."""
    if not markdown:
        return []
    matches = list(IMAGE_GRID_RE.finditer(markdown))
    if len(matches) < MIN_IMAGE_GRID_ITEMS:
        return []

    records = []
    for m in matches:
        name = m.group(1).strip().split("\n")[0].strip()
        if 2 < len(name) < 100:
            records.append(InvestmentRecord(
                name=clean_investment_name(name, investor_name),
                source_url=page_url,
                portfolio_url=page_url,
            ))
    logger.info("Image grid on %s: %d names", page_url, len(records))
    return records
