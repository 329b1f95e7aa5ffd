# utils/text.py
import re
from typing import Optional

from schema import InvestmentRecord
from utils.investor import clean_investment_name

PAGE_FRAGMENT_PATTERNS = [
    re.compile(r"Investments\s*[-–—]\s*Page\s*\d+", re.I),
    re.compile(r"Role\s*:\s*", re.I),
    re.compile(r"Investment\s*:\s*", re.I),
    re.compile(r"Portfolio\s*:\s*", re.I),
    re.compile(r"Company\s*:\s*", re.I),
]

MAX_INDUSTRY_LEN = 120
MAX_INDUSTRY_COMMAS = 4

TEXT_FIELDS = [
    "date", "year", "description", "ceo", "investment_role",
    "ownership", "location", "website", "status",
]


def clean_text(text: Optional[str]) -> str:
    """Remove listing-page fragments and collapse whitespace."""
    if not text:
        return ""
    for pattern in PAGE_FRAGMENT_PATTERNS:
        text = pattern.sub("", text)
    return " ".join(text.split())


def normalize_industry(industry: Optional[str]) -> Optional[str]:
    """Concatenated tag lists ("SaaS, Fintech, Health, ...") collapse to the first tag."""
    if not industry:
        return None
    if len(industry) > MAX_INDUSTRY_LEN or industry.count(",") > MAX_INDUSTRY_COMMAS:
        first = industry.split(",")[0].strip()
        return first if len(first) > 3 else None
    return industry


def normalize_status(status: Optional[str]) -> Optional[str]:
    if not status:
        return status
    lowered = status.lower()
    if "current" in lowered or "active" in lowered:
        return "Current"
    if "exited" in lowered or "realized" in lowered:
        return "Exited"
    return status.strip()


def clean_record(record: InvestmentRecord, investor_name: str = "") -> InvestmentRecord:
    update = {
        "name": clean_investment_name(clean_text(record.name), investor_name),
        "industry": normalize_industry(clean_text(record.industry)),
        "partners": [p for p in (clean_text(p) for p in record.partners) if p],
    }
    for field in TEXT_FIELDS:
        update[field] = clean_text(getattr(record, field)) or None
    update["status"] = normalize_status(update["status"])
    return record.model_copy(update=update)
