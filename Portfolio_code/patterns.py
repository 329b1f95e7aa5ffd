# patterns.py
"""
Field pattern tables for the heuristic extraction tiers.

Each table is an ordered list of (compiled regex, extractor) pairs. first_match
walks the list and stops at the first extractor that returns a value, so
adding a site-specific pattern is a one-line change here and never touches
the extractors.
"""
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from utils.text import normalize_status

Extractor = Callable[[re.Match], Optional[str]]
FieldRules = List[Tuple[re.Pattern, Extractor]]

MIN_YEAR = 1990


def group1(m: re.Match) -> Optional[str]:
    value = (m.group(1) or "").strip()
    return value or None


def valid_year(m: re.Match) -> Optional[str]:
    value = (m.group(1) or "").strip()
    if value.isdigit() and MIN_YEAR <= int(value) <= datetime.now().year:
        return value
    return None


def status_value(m: re.Match) -> Optional[str]:
    value = next((g.strip() for g in m.groups() if g and g.strip()), "")
    return normalize_status(value) if value else None


def first_match(text: str, rules: FieldRules,
                accept: Optional[Callable[[str], bool]] = None) -> Optional[str]:
    if not text:
        return None
    for pattern, extract in rules:
        m = pattern.search(text)
        if not m:
            continue
        value = extract(m)
        if value and (accept is None or accept(value)):
            return value
    return None


def _rules(*pairs) -> FieldRules:
    return [(re.compile(p, flags), fn) for p, flags, fn in pairs]


# --------------------------------------------------
# Tier 2: raw HTML
# --------------------------------------------------
HTML_RULES: Dict[str, FieldRules] = {
    "industry": _rules(
        (r'<(?:div|span|p|td|dd)[^>]*(?:class|id)="[^"]*(?:industry|sector|category|vertical)[^"]*"[^>]*>([^<]+)<', re.I, group1),
        (r"(?:Industry|Sector|Category|Vertical|Business)[\s:]*<[^>]*>([^<]+)", re.I, group1),
        (r"(?:Industry|Sector|Category|Vertical|Business)[\s:]+([A-Za-z\s&,/.\-]{3,50})(?:\n|<|$)", re.I, group1),
    ),
    "year": _rules(
        (r"(?:Date|Year|Investment Date|Acquired|Initial Investment|Since)[\s:]*<[^>]*>(\d{4})", re.I, valid_year),
        (r"(?:Date|Year|Investment Date|Acquired|Initial Investment|Since)[\s:]+(\d{4})", re.I, valid_year),
        (r"\b(19\d{2}|20\d{2})\b", 0, valid_year),
    ),
    "ceo": _rules(
        (r"(?:CEO|President|Chief Executive|Managing Director)[\s:]*<[^>]*>([^<]{3,50})<", re.I, group1),
        (r"(?:CEO|President|Chief Executive|Managing Director)[\s:]+([A-Za-z\s\-'.]{3,50})(?:\n|<|$)", re.I, group1),
    ),
    "website": _rules(
        (r'<a[^>]+href="(https?://[^"]+)"[^>]*>\s*(?:Website|Visit|Company Site)', re.I, group1),
        (r'(?:Website|URL|Web)[\s:]*<a[^>]+href="([^"]+)"', re.I, group1),
        (r'href="(https?://[^"]+)"[^>]*target="_blank"', re.I, group1),
    ),
    "location": _rules(
        (r"(?:Location|Headquarters|HQ|Based in|Office)[\s:]*<[^>]*>([^<]{3,50})<", re.I, group1),
        (r"(?:Location|Headquarters|HQ|Based in)[\s:]+([A-Za-z\s,\-'.]{3,50})(?:\n|<|$)", re.I, group1),
    ),
    "ownership": _rules(
        (r"(?:Ownership|Equity|Stake)[\s:]*<[^>]*>(\d+(?:\.\d+)?%)", re.I, group1),
        (r"(?:Ownership|Equity|Stake)[\s:]+(\d+(?:\.\d+)?%)", re.I, group1),
        (r"(\d+(?:\.\d+)?%)\s*(?:ownership|equity|stake)", re.I, group1),
        (r"(majority|minority|controlling|significant|partial)\s+(?:stake|ownership|interest|investment)", re.I, group1),
        (r"(?:acquired|owns|holds)\s+(\d+(?:\.\d+)?%)", re.I, group1),
    ),
    "investment_role": _rules(
        (r"(?:Investment Role|Role|Type|Strategy)[\s:]*<[^>]*>([^<]{3,50})<", re.I, group1),
        (r"(?:Investment Role|Investment Type|Role|Type)[\s:]+([A-Za-z\s,\-]{3,50})(?:\n|<|$)", re.I, group1),
    ),
    "status": _rules(
        (r'<a[^>]*href="[^"]*portfolio_cat/(current|exited)[^"]*"[^>]*>([^<]+)</a>', re.I, status_value),
        (r"category[^>]*>?\s*(current|exited|active|realized)", re.I, status_value),
        (r"(?:Portfolio|Category)[\s:]*(?:<[^>]*>)?(Current|Exited|Active|Realized)", re.I, status_value),
        (r"(?:Status|Investment Status)[\s:]*<[^>]*>(Active|Current|Exited|Realized|Portfolio Company)<", re.I, status_value),
        (r"(?:Status|Investment Status)[\s:]+(Active|Current|Exited|Realized|Portfolio Company)", re.I, status_value),
        (r'<span[^>]*class="[^"]*(?:status|category)[^"]*"[^>]*>([^<]+)</span>', re.I, status_value),
    ),
}

HTML_DESCRIPTION_RE = re.compile(
    r'<(?:div|p)[^>]*(?:class|id)="[^"]*(?:description|about|overview|content)[^"]*"[^>]*>([^<]{50,500})<', re.I
)


# --------------------------------------------------
# Tier 3: markdown / plain text
# --------------------------------------------------
TEXT_RULES: Dict[str, FieldRules] = {
    "industry": _rules(
        (r"\*\*(?:Industry|Sector|Category|Vertical|Business):?\*\*[\s:]*([A-Za-z\s&,/.\-]{3,50})(?:\n|$)", re.I, group1),
        (r"(?:Industry|Sector|Category|Vertical|Business)[\s:]+([A-Za-z\s&,/.\-]{3,50})(?:\n|$|<)", re.I, group1),
        (r"##\s*(?:Industry|Sector|Category)\s*\n+([A-Za-z\s&,/.\-]{3,50})", re.I, group1),
    ),
    "year": _rules(
        (r"\*\*(?:Date|Year|Investment Date|Acquired|Initial Investment|Since):?\*\*[\s:]*(\d{4})", re.I, valid_year),
        (r"(?:Date|Year|Investment Date|Acquired|Initial Investment|Since)[\s:]+(\d{4})", re.I, valid_year),
        (r"##\s*(?:Year|Date|Investment Year)\s*\n+(\d{4})", re.I, valid_year),
        (r"\b(19\d{2}|20\d{2})\b", 0, valid_year),
    ),
    "ceo": _rules(
        (r"\*\*(?:CEO|President|Chief Executive|Managing Director|President & CEO):?\*\*[\s:]*([A-Za-z\s\-'.]{3,50})(?:\n|$)", re.I, group1),
        (r"(?:CEO|President|Chief Executive|Managing Director)[\s:]+([A-Za-z\s\-'.]{3,50})(?:\n|$)", re.I, group1),
    ),
    "website": _rules(
        (r"\*\*(?:Website|URL|Web):?\*\*[\s:]*<?([a-z]+://[^\s<>)]+)>?", re.I, group1),
        (r"(?:Website|URL|Web)[\s:]+<?([a-z]+://[^\s<>)]+)>?", re.I, group1),
        (r"\[(?:Visit Website|Website|Company Site)\]\(([^)]+)\)", re.I, group1),
        (r"(https?://[^\s<>)]+\.[a-z]{2,})", re.I, group1),
    ),
    "location": _rules(
        (r"\*\*(?:Location|Headquarters|HQ|Based in|Office):?\*\*[\s:]*([A-Za-z\s,\-'.]{3,50})(?:\n|$)", re.I, group1),
        (r"(?:Location|Headquarters|HQ|Based in|Office)[\s:]+([A-Za-z\s,\-'.]{3,50})(?:\n|$)", re.I, group1),
    ),
    "ownership": _rules(
        (r"\*\*(?:Ownership|Equity|Stake):?\*\*[\s:]*(\d+(?:\.\d+)?%)", re.I, group1),
        (r"(?:Ownership|Equity|Stake)[\s:]+(\d+(?:\.\d+)?%)", re.I, group1),
        (r"(\d+(?:\.\d+)?%)\s*(?:ownership|equity|stake)", re.I, group1),
        (r"(majority|minority|controlling|significant|partial)\s+(?:stake|ownership|interest|investment)", re.I, group1),
        (r"(?:acquired|owns|holds)\s+(\d+(?:\.\d+)?%)", re.I, group1),
    ),
    "investment_role": _rules(
        (r"\*\*(?:Investment Role|Role|Type|Strategy):?\*\*[\s:]*([A-Za-z\s,\-]{3,50})(?:\n|$)", re.I, group1),
        (r"(?:Investment Role|Investment Type|Role|Type)[\s:]+([A-Za-z\s,\-]{3,50})(?:\n|$)", re.I, group1),
    ),
    "status": _rules(
        (r"\[([^\]]+)\]\([^)]*portfolio_cat/(current|exited)[^)]*\)", re.I, status_value),
        (r"\*\*(?:Status|Investment Status|Category):?\*\*[\s:]*\*?\*?(Active|Current|Exited|Realized|Portfolio Company)", re.I, status_value),
        (r"(?:Status|Investment Status|Category)[\s:]+\*?\*?(Active|Current|Exited|Realized|Portfolio Company)", re.I, status_value),
        (r"(?:Portfolio|Category)[\s:]+\*\*(Current|Exited|Active|Realized)\*\*", re.I, status_value),
        (r"(Current|Exited|Active|Realized)\s+(?:Portfolio|Investment)", re.I, status_value),
    ),
}

# Field filling only trusts labelled years; a bare number on the page is too weak.
LABELLED_YEAR_RULES: FieldRules = _rules(
    (r"(?:Year\s+of\s+Initial\s+Investment|Investment\s+Year|Year Acquired|Initial Investment)[\s:]+(\d{4})", re.I, valid_year),
    (r"\b(?:Since|In)\s+(\d{4})", re.I, valid_year),
)

FILL_RULES: Dict[str, FieldRules] = {**TEXT_RULES, "year": TEXT_RULES["year"][:3] + LABELLED_YEAR_RULES}

TEXT_DESCRIPTION_RE = re.compile(r"^([^#\n]{100,500})", re.M)


# --------------------------------------------------
# Listing-page name candidates
# --------------------------------------------------
HEADING_PATTERNS = [
    re.compile(r"##\s+([A-Z][A-Za-z\s&.\-]{2,80})(?:\s*\n)"),
    re.compile(r"\*\*([A-Z][A-Za-z\s&.\-]{2,80})\*\*"),
    re.compile(r"^([A-Z][A-Za-z\s&.\-]{2,80})$", re.M),
]

NON_COMPANY_PATTERNS = [
    re.compile(r"\b(we want|contact us|learn more|about us|our team|get in touch|click here)\b", re.I),
    re.compile(r"\b(view all|see all|read more|find out|discover|explore)\b", re.I),
    re.compile(r"\b(portfolio|investment|company|companies|business|businesses)\b$", re.I),
    re.compile(r"^(the|our|your|their)\s", re.I),
    re.compile(r"\?$"),
    re.compile(r"\b(page|section|category|menu|navigation)\b", re.I),
]

CONTEXT_INDUSTRY_RE = re.compile(r"(?:Industry|Sector|Category)[\s:]+([A-Za-z\s&,/.\-]{3,40})", re.I)
CONTEXT_DATE_RE = re.compile(r"\b(?:Date|Year|Since|In)[\s:]+([A-Za-z]+\s+\d{4}|\d{4})", re.I)
CONTEXT_DESCRIPTION_RE = re.compile(r"([A-Z][^.!?]{50,300}[.!?])")

IMAGE_GRID_RE = re.compile(r"!\[[^\]]*\]\([^)]+\)\s*\n\s*([A-Z][A-Za-z0-9\s&,.'’\-]+)")
