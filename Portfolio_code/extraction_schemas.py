# extraction_schemas.py
"""
JSON schemas sent to the renderer for structured extraction, and the models
the returned payload is parsed into.

Renderers return loosely typed JSON: years as numbers, nested
{company, investment} objects, lists where strings were asked for. Everything
is coerced here so the rest of the pipeline only sees flat InvestmentRecords.
"""
import logging
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from schema import InvestmentRecord
from utils.investor import clean_investment_name

logger = logging.getLogger(__name__)

_COMPANY_PROPERTIES = {
    "company_name": {"type": "string", "description": "Portfolio company name for THIS SPECIFIC COMPANY ONLY"},
    "industry": {"type": "string", "description": "Primary industry or sector"},
    "ceo": {"type": "string", "description": "CEO or company leader name"},
    "investment_role": {
        "type": "string",
        "description": "The investment firm's role, e.g. 'Lead Investor', 'Co-Investor', 'Control', 'Majority'",
    },
    "ownership": {
        "type": "string",
        "description": "Ownership stake or control level, e.g. 'Majority', 'Minority' or a percentage",
    },
    "year_of_initial_investment": {"type": "string", "description": "Year of first investment (YYYY)"},
    "location": {"type": "string", "description": "Headquarters location (City, State/Country)"},
    "website": {"type": "string", "description": "Company website URL"},
    "status": {"type": "string", "description": "Investment status, e.g. 'Current', 'Exited'"},
    "description": {"type": "string", "description": "Brief company description"},
}

SINGLE_COMPANY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": _COMPANY_PROPERTIES,
    "required": ["company_name"],
}

LISTING_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "investments": {
            "type": "array",
            "description": (
                "ALL portfolio companies visible on this page. Extract the company name even "
                "if no other details are visible (logo walls, name-only grids)."
            ),
            "items": {
                "type": "object",
                "properties": _COMPANY_PROPERTIES,
                "required": ["company_name"],
            },
        }
    },
    "required": ["investments"],
}

# nested shape: {"company": {...}, "investment": {...}}
_NESTED_COMPANY_KEYS = {
    "name": "company_name",
    "industry": "industry",
    "ceo": "ceo",
    "location": "location",
    "website": "website",
    "description": "description",
}
_NESTED_INVESTMENT_KEYS = {
    "role": "investment_role",
    "ownership": "ownership",
    "year_of_initial_investment": "year_of_initial_investment",
    "status": "status",
}


class CompanyFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    company_name: Optional[str] = None
    industry: Optional[str] = None
    ceo: Optional[str] = None
    investment_role: Optional[str] = None
    ownership: Optional[str] = None
    year_of_initial_investment: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_nested(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        company = data.get("company")
        investment = data.get("investment")
        if not isinstance(company, dict) and not isinstance(investment, dict):
            return data
        flat = {k: v for k, v in data.items() if k not in ("company", "investment")}
        for src, keys in ((company, _NESTED_COMPANY_KEYS), (investment, _NESTED_INVESTMENT_KEYS)):
            if isinstance(src, dict):
                for key, target in keys.items():
                    if src.get(key) is not None and flat.get(target) is None:
                        flat[target] = src[key]
        return flat

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, dict):
            return None
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value if v is not None)
        value = str(value).strip()
        return value or None


class SingleCompanyPayload(BaseModel):
    kind: Literal["single"] = "single"
    company: CompanyFields


class ListingPayload(BaseModel):
    kind: Literal["listing"] = "listing"
    investments: List[CompanyFields] = []


ExtractionPayload = Union[SingleCompanyPayload, ListingPayload]


def schema_for(is_detail: bool) -> Dict[str, Any]:
    return SINGLE_COMPANY_SCHEMA if is_detail else LISTING_SCHEMA


def parse_payload(extracted: Any) -> Optional[ExtractionPayload]:
    """Classify a raw renderer `extract` object. None when it carries no company data."""
    if not isinstance(extracted, dict) or not extracted:
        return None
    try:
        if isinstance(extracted.get("investments"), list):
            items = [i for i in extracted["investments"] if isinstance(i, dict)]
            return ListingPayload(investments=items)
        if "company_name" in extracted or isinstance(extracted.get("company"), dict):
            return SingleCompanyPayload(company=extracted)
    except ValidationError as e:
        logger.warning("Unusable structured payload: %s", e)
        return None
    return None


def _to_record(fields: CompanyFields, page_url: str, investor_name: str) -> InvestmentRecord:
    return InvestmentRecord(
        name=clean_investment_name(fields.company_name or "", investor_name),
        industry=fields.industry,
        ceo=fields.ceo,
        investment_role=fields.investment_role,
        ownership=fields.ownership,
        year=fields.year_of_initial_investment,
        location=fields.location,
        website=fields.website,
        status=fields.status,
        description=fields.description,
        source_url=page_url,
        portfolio_url=page_url,
    )


def normalize_payload(payload: Optional[ExtractionPayload], page_url: str,
                      investor_name: str = "") -> List[InvestmentRecord]:
    """Flatten a parsed payload into records, dropping entries without a name."""
    if payload is None:
        return []
    if isinstance(payload, SingleCompanyPayload):
        items = [payload.company]
    else:
        items = payload.investments
    records = [_to_record(item, page_url, investor_name) for item in items]
    return [r for r in records if r.name]
