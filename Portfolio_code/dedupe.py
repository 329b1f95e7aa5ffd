# dedupe.py
"""
Fuzzy de-duplication of investment records.

Two records describe the same company when their normalized names are equal
or one contains the other ("Acme" / "Acme Holdings Inc"). The more complete
record is kept and its empty fields are filled from the other.
"""
import logging
import re
from typing import List, Optional

from schema import InvestmentRecord, OPTIONAL_FIELDS

logger = logging.getLogger(__name__)

LEGAL_SUFFIX_RE = re.compile(r"\b(inc|llc|ltd|corp|corporation|company|co)\b\.?")
PUNCTUATION_RE = re.compile(r"[^\w\s]")
GENERIC_NAMES = {"investments", "portfolio", "companies", "company", "investment"}

MERGE_FIELDS = OPTIONAL_FIELDS + ["portfolio_url"]


def normalize_name(name: str) -> str:
    key = LEGAL_SUFFIX_RE.sub("", (name or "").lower())
    key = PUNCTUATION_RE.sub("", key)
    return " ".join(key.split())


def same_company(a: str, b: str) -> bool:
    if a == b:
        return True
    if not a or not b:
        return False
    return a in b or b in a


def merge_records(existing: InvestmentRecord, incoming: InvestmentRecord) -> InvestmentRecord:
    if incoming.populated_count() > existing.populated_count():
        base, other = incoming, existing
    else:
        base, other = existing, incoming

    update = {}
    inferred = list(base.inferred_fields)
    for f in MERGE_FIELDS:
        if not getattr(base, f) and getattr(other, f):
            update[f] = getattr(other, f)
            if f in other.inferred_fields and f not in inferred:
                inferred.append(f)
    update["inferred_fields"] = inferred
    return base.model_copy(update=update)


def _merge_pass(records: List[InvestmentRecord]) -> List[InvestmentRecord]:
    merged: List[InvestmentRecord] = []
    keys: List[str] = []
    for record in records:
        key = normalize_name(record.name)
        match: Optional[int] = next(
            (i for i, k in enumerate(keys) if same_company(k, key)), None
        )
        if match is None:
            merged.append(record)
            keys.append(key)
            continue
        combined = merge_records(merged[match], record)
        logger.debug("Merged duplicate %r into %r", record.name, combined.name)
        merged[match] = combined
        keys[match] = normalize_name(combined.name)
    return merged


def dedupe(records: List[InvestmentRecord]) -> List[InvestmentRecord]:
    """Merge until no pair matches, so dedupe(dedupe(x)) == dedupe(x)."""
    for record in records:
        if record.name.strip().lower() in GENERIC_NAMES:
            logger.warning("Generic investment name detected: %r from %s", record.name, record.source_url)

    current = list(records)
    while True:
        merged = _merge_pass(current)
        if len(merged) == len(current):
            break
        current = merged
    logger.info("Deduplicated %d records into %d", len(records), len(merged))
    return merged
