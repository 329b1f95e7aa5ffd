# field_filler.py
import logging
import re

from patterns import FILL_RULES, first_match
from schema import InvestmentRecord
from utils.url_normalizer import not_same_site

logger = logging.getLogger(__name__)

FILL_FIELDS = ["ceo", "industry", "year", "location", "website", "status", "ownership", "investment_role"]

MAJORITY_ROLE_RE = re.compile(r"\b(lead|majority|control)", re.I)
MINORITY_ROLE_RE = re.compile(r"\b(minority|co-?investor)", re.I)
CURRENT_FROM_YEAR = 2020


def fill_missing_fields(record: InvestmentRecord, text: str) -> InvestmentRecord:
    """
    Fill still-empty fields from page text. Never overwrites a value.

    Two inferences are applied afterwards and recorded in inferred_fields:
      - ownership from investment_role ("Lead Investor" -> "Majority stake")
      - status "Current" when the initial investment year is 2020 or later
    """
    for field in FILL_FIELDS:
        if getattr(record, field):
            continue
        accept = not_same_site(record.source_url) if field == "website" else None
        value = first_match(text or "", FILL_RULES[field], accept)
        if value:
            setattr(record, field, value)
            logger.debug("Fallback found %s for %s: %s", field, record.name, value)

    inferred = list(record.inferred_fields)
    if not record.ownership and record.investment_role:
        if MAJORITY_ROLE_RE.search(record.investment_role):
            record.ownership = "Majority stake"
        elif MINORITY_ROLE_RE.search(record.investment_role):
            record.ownership = "Minority stake"
        if record.ownership:
            inferred.append("ownership")

    if not record.status and record.year and record.year.isdigit() and int(record.year) >= CURRENT_FROM_YEAR:
        record.status = "Current"
        inferred.append("status")

    record.inferred_fields = inferred
    return record
