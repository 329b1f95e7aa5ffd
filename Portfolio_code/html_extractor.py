# html_extractor.py
"""
Tier 2: selector and regex extraction from rendered HTML.

Detail pages yield one record built from whole-document patterns. Listing
pages yield one record per repeated card/row; when no row selector matches,
portfolio-looking anchors are used instead.
"""
import logging
import re
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from classifier import is_detail_page
from patterns import HTML_DESCRIPTION_RE, HTML_RULES, first_match
from schema import InvestmentRecord, PageDoc
from utils.investor import clean_investment_name, title_from_slug
from utils.url_normalizer import not_same_site

logger = logging.getLogger(__name__)

ROW_SELECTORS = [
    ".investment-row",
    ".portfolio-item",
    ".company-card",
    "tr.investment",
    "[data-investment]",
    ".portfolio-company",
]
NAME_SELECTORS = [".name", ".company-name", ".title", "h2", "h3", ".investment-name"]
INDUSTRY_SELECTORS = [".industry", ".sector", ".category", ".vertical", "[data-industry]"]
DATE_SELECTORS = [".date", ".investment-date", ".year", "time", "[datetime]"]
DESCRIPTION_SELECTORS = [".description", ".summary", ".about", "p"]

PARTNER_CLASS_RE = re.compile(r"partners|team|leadership|executives", re.I)
LOGO_WORDS_RE = re.compile(r"\s*\b(logo|company|brand)\b\s*", re.I)
ANCHOR_KEYWORDS = ("portfolio", "investment", "company")
GENERIC_HEADINGS = {"investments", "portfolio"}

DETAIL_FIELDS = ["industry", "ceo", "website", "location", "ownership", "investment_role", "status"]


def _first_text(node, selectors: List[str], min_len: int = 1) -> Optional[str]:
    for selector in selectors:
        el = node.select_one(selector)
        if el is None:
            continue
        text = el.get_text(" ", strip=True)
        if len(text) >= min_len:
            return text
    return None


# --------------------------------------------------
# Detail page
# --------------------------------------------------
def extract_detail(page: PageDoc, investor_name: str = "") -> List[InvestmentRecord]:
    soup = BeautifulSoup(page.html, "html.parser")
    html = page.html

    name = ""
    h1 = soup.find("h1")
    if h1:
        h1_name = clean_investment_name(h1.get_text(" ", strip=True), investor_name)
        if h1_name and h1_name.lower() not in GENERIC_HEADINGS:
            name = h1_name
    if not name:
        name = title_from_slug(page.url)
    if not name:
        name = clean_investment_name(page.title, investor_name)
    if not name:
        return []

    record = InvestmentRecord(name=name, source_url=page.url, portfolio_url=page.url)
    accept_site = not_same_site(page.url)
    for field in DETAIL_FIELDS:
        accept = accept_site if field == "website" else None
        setattr(record, field, first_match(html, HTML_RULES[field], accept))

    year = first_match(html, HTML_RULES["year"])
    record.year = year
    record.date = year

    if page.description:
        record.description = page.description
    else:
        m = HTML_DESCRIPTION_RE.search(html)
        if m:
            record.description = m.group(1).strip()

    partners = []
    for el in soup.find_all(class_=PARTNER_CLASS_RE):
        text = el.get_text(" ", strip=True)
        if 0 < len(text) < 100:
            partners.append(text)
    record.partners = partners

    logger.debug("HTML detail extraction for %s: %s", page.url, record.name)
    return [record]


# --------------------------------------------------
# Listing page
# --------------------------------------------------
def _row_record(row, page_url: str) -> Optional[InvestmentRecord]:
    name = _first_text(row, NAME_SELECTORS)
    if not name:
        link = row.find("a")
        if link and link.get_text(strip=True):
            name = link.get_text(" ", strip=True)
    if not name:
        img = row.find("img", alt=True)
        if img and img["alt"].strip():
            name = LOGO_WORDS_RE.sub(" ", img["alt"]).strip()

    portfolio_url = page_url
    link = row.find("a", href=True)
    if link:
        portfolio_url = urljoin(page_url, link["href"])
        if not name:
            name = title_from_slug(portfolio_url)
    if not name:
        return None

    return InvestmentRecord(
        name=name,
        source_url=page_url,
        portfolio_url=portfolio_url,
        industry=_first_text(row, INDUSTRY_SELECTORS),
        date=_first_text(row, DATE_SELECTORS),
        description=_first_text(row, DESCRIPTION_SELECTORS, min_len=21),
    )


def _anchor_records(soup, page_url: str) -> List[InvestmentRecord]:
    records = []
    for a in soup.find_all("a", href=True):
        href = a["href"]
        text = a.get_text(" ", strip=True)
        if any(k in href for k in ANCHOR_KEYWORDS) and 3 < len(text) < 100:
            records.append(InvestmentRecord(
                name=text,
                source_url=page_url,
                portfolio_url=urljoin(page_url, href),
            ))
    return records


def extract_listing(page: PageDoc) -> List[InvestmentRecord]:
    soup = BeautifulSoup(page.html, "html.parser")
    found_rows = False
    for selector in ROW_SELECTORS:
        rows = soup.select(selector)
        if not rows:
            continue
        found_rows = True
        logger.debug("Found %d rows with %s on %s", len(rows), selector, page.url)
        records = [r for r in (_row_record(row, page.url) for row in rows) if r]
        if records:
            return records

    if found_rows:
        return []
    return _anchor_records(soup, page.url)


def extract_from_html(page: PageDoc, investor_name: str = "") -> List[InvestmentRecord]:
    if not page.html:
        return []
    if is_detail_page(page.url):
        return extract_detail(page, investor_name)
    return extract_listing(page)
