"""
Grading Schemas

Records exchanged between the scraper, the grading stream and the cache.
"""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

CATEGORY_NAMES = ("performance", "mobile", "seo", "content")

GradeLetter = Literal["A+", "A", "B", "C", "D", "F"]
Priority = Literal["high", "medium", "low"]


# ============================================================================
# Scraped content
# ============================================================================

class PageResult(BaseModel):
    """One crawled page as returned by the scrape provider."""
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None
    title: Optional[str] = None
    image: Optional[str] = None
    text: Optional[str] = None


class SiteSnapshot(BaseModel):
    """Pages of one scrape target, in crawl order."""
    results: List[PageResult] = Field(default_factory=list)

    @property
    def main_page(self) -> Optional[PageResult]:
        return self.results[0] if self.results else None


class ScrapeRequest(BaseModel):
    url: str

    model_config = ConfigDict(json_schema_extra={"example": {"url": "example.com"}})


# ============================================================================
# Streaming (partial) grading record
# ============================================================================

class CategoryResult(BaseModel):
    score: Optional[int] = None
    findings: Optional[List[str]] = None
    recommendation: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class Categories(BaseModel):
    performance: Optional[CategoryResult] = None
    mobile: Optional[CategoryResult] = None
    seo: Optional[CategoryResult] = None
    content: Optional[CategoryResult] = None

    def populated(self) -> List[str]:
        return [
            name for name in CATEGORY_NAMES
            if getattr(self, name) is not None and not getattr(self, name).is_empty()
        ]


class Improvement(BaseModel):
    priority: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    impact: Optional[str] = None


class GradingRecord(BaseModel):
    """
    Best-effort snapshot of the grade as it is being generated.

    Every field is optional: the grading stream fills them in as the model
    writes them, so intermediate snapshots are routinely missing fields or
    carry half-written lists.
    """
    model_config = ConfigDict(extra="ignore")

    overall_score: Optional[int] = None
    grade_letter: Optional[str] = None
    summary: Optional[str] = None
    categories: Optional[Categories] = None
    top_improvements: Optional[List[Improvement]] = None
    upgrade_prompt: Optional[str] = None

    def is_complete(self) -> bool:
        """A record is worth caching once it has a score and at least one category."""
        if self.overall_score is None or self.categories is None:
            return False
        return bool(self.categories.populated())

    def is_final(self) -> bool:
        """Whether the record satisfies the full final-frame schema."""
        try:
            FinalGradingRecord.model_validate(self.model_dump(exclude_none=True))
        except ValidationError:
            return False
        return True

    def merged_with(self, newer: "GradingRecord") -> "GradingRecord":
        """Overlay a newer snapshot; fields already set are never cleared."""
        merged = merge_snapshot(
            self.model_dump(exclude_none=True),
            newer.model_dump(exclude_none=True),
        )
        return GradingRecord.model_validate(merged)


def merge_snapshot(current: Any, incoming: Any) -> Any:
    if incoming is None:
        return current
    if isinstance(current, dict) and isinstance(incoming, dict):
        merged = dict(current)
        for key, value in incoming.items():
            merged[key] = merge_snapshot(current.get(key), value)
        return merged
    if isinstance(current, list) and isinstance(incoming, list):
        size = max(len(current), len(incoming))
        return [
            merge_snapshot(
                current[i] if i < len(current) else None,
                incoming[i] if i < len(incoming) else None,
            )
            for i in range(size)
        ]
    return incoming


class Frame(BaseModel):
    """One line of the grading stream: the whole record so far."""
    result: GradingRecord


# ============================================================================
# Final grading record (tool schema for the grading model)
# ============================================================================

class FinalCategory(BaseModel):
    score: int = Field(ge=0, le=100)
    findings: List[str] = Field(min_length=3, max_length=3)
    recommendation: str


class FinalCategories(BaseModel):
    performance: FinalCategory
    mobile: FinalCategory
    seo: FinalCategory
    content: FinalCategory


class FinalImprovement(BaseModel):
    priority: Priority
    title: str
    description: str
    impact: str


class FinalGradingRecord(BaseModel):
    overall_score: int = Field(ge=0, le=100)
    grade_letter: GradeLetter
    summary: str
    categories: FinalCategories
    top_improvements: List[FinalImprovement] = Field(min_length=5, max_length=5)
    upgrade_prompt: str = Field(min_length=1)


# ============================================================================
# Grading request
# ============================================================================

class ProfileStatus(str, Enum):
    AVAILABLE = "available"
    NOT_FOUND = "not_found"  # lookup ran and matched nothing
    FAILED = "failed"  # lookup errored


class ModelTier(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class GradingRequest(BaseModel):
    url: str
    mainpage: Dict[str, Any] = Field(default_factory=dict)
    subpages: List[Dict[str, Any]] = Field(default_factory=list)
    profile_data: Optional[List[Dict[str, Any]]] = None
    profile_status: ProfileStatus = ProfileStatus.NOT_FOUND

    @classmethod
    def from_snapshots(
        cls,
        url: str,
        site: SiteSnapshot,
        profile: Optional[SiteSnapshot],
        profile_failed: bool = False,
    ) -> "GradingRequest":
        pages = [page.model_dump(exclude_none=True) for page in site.results]
        main_page = site.main_page

        if profile_failed:
            profile_status, profile_data = ProfileStatus.FAILED, None
        elif profile is None or not profile.results:
            profile_status, profile_data = ProfileStatus.NOT_FOUND, None
        else:
            profile_status = ProfileStatus.AVAILABLE
            profile_data = [page.model_dump(exclude_none=True) for page in profile.results]

        return cls(
            url=url,
            mainpage=main_page.model_dump(exclude_none=True) if main_page else {},
            subpages=pages,
            profile_data=profile_data,
            profile_status=profile_status,
        )


class LlmContentRequest(GradingRequest):
    """Body of the grading endpoint; the tier lets a client ask for the fallback model."""
    model_config = ConfigDict(protected_namespaces=())

    model_tier: ModelTier = ModelTier.PRIMARY


# ============================================================================
# Cache
# ============================================================================

class CacheEntry(BaseModel):
    """A completed run, stored whole under its normalized URL."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    site_snapshot: SiteSnapshot
    profile_snapshot: Optional[SiteSnapshot] = None
    grading_record: GradingRecord


# ============================================================================
# Landing
# ============================================================================

class GradeStartRequest(BaseModel):
    url: str

    model_config = ConfigDict(json_schema_extra={"example": {"url": "https://example.com/"}})


class GradeStartResponse(BaseModel):
    url: str
    path: str
    stream_url: str
