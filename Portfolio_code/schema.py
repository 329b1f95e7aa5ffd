# schema.py
from typing import List, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


OPTIONAL_FIELDS = [
    "industry", "date", "year", "description", "ceo", "investment_role",
    "ownership", "location", "website", "status", "partners",
]


class InvestmentRecord(_CamelModel):
    name: str
    source_url: str
    industry: Optional[str] = None
    date: Optional[str] = None
    year: Optional[str] = None
    description: Optional[str] = None
    ceo: Optional[str] = None
    investment_role: Optional[str] = None
    ownership: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    status: Optional[str] = None
    partners: List[str] = []
    portfolio_url: Optional[str] = None
    inferred_fields: List[str] = []   # values set by heuristics, not read from the page

    def populated_count(self) -> int:
        """Number of non-empty data fields (inferred_fields excluded)."""
        values = [self.name, self.source_url, self.portfolio_url]
        values.extend(getattr(self, f) for f in OPTIONAL_FIELDS)
        return sum(1 for v in values if v)


class PageDoc(BaseModel):
    url: str
    html: str = ""
    markdown: str = ""
    title: str = ""
    description: str = ""


class CrawlStatus(BaseModel):
    status: str                     # running | completed | failed
    pages: List[PageDoc] = []
    completed: int = 0
    total: int = 0


class ScrapedPage(PageDoc):
    extracted: Optional[Dict[str, Any]] = None


class ValidationResult(BaseModel):
    name: str = ""
    confidence: int
    missing: List[str] = []
    method: str = ""


class DiscoveryResult(BaseModel):
    seed_url: str
    final_depth: int
    depth_reason: str = ""
    discovered_urls: List[str] = []
    listing_pages: List[str] = []
    detail_pages: List[str] = []
    pages: Dict[str, PageDoc] = {}
    partial: bool = False
    from_cache: bool = False
    completed: int = 0
    total: int = 0


class CrawlStats(_CamelModel):
    completed: int = 0
    total: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    successful_pages: int = 0
    failed_pages: int = 0


class ExtractionQuality(_CamelModel):
    average_confidence: int = 0
    method_breakdown: Dict[str, int] = {}
    incomplete_investments: int = 0


class ScrapeResult(_CamelModel):
    success: bool
    partial: bool = False
    request_id: str = ""
    investments: List[InvestmentRecord] = []
    crawl_stats: CrawlStats = Field(default_factory=CrawlStats)
    extraction_quality: ExtractionQuality = Field(default_factory=ExtractionQuality)
    crawl_depth: int = 0
