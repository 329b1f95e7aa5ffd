# confidence.py
from schema import InvestmentRecord, ValidationResult

REQUIRED_FIELDS = ["name"]
SCORED_FIELDS = [
    "industry", "ceo", "website", "year", "location", "status", "investment_role", "ownership",
]

LOW_CONFIDENCE = 70
GLOBAL_FALLBACK_CONFIDENCE = 20


def score(record: InvestmentRecord, method: str) -> ValidationResult:
    missing = [f for f in REQUIRED_FIELDS if not getattr(record, f)]
    filled = 0
    for f in SCORED_FIELDS:
        value = getattr(record, f)
        if value and str(value).strip():
            filled += 1
        else:
            missing.append(f)
    return ValidationResult(
        name=record.name,
        confidence=round(100 * filled / len(SCORED_FIELDS)),
        missing=missing,
        method=method,
    )
