from app.features.grading.schemas.grading import (
    CATEGORY_NAMES,
    CacheEntry,
    Frame,
    GradingRecord,
    GradingRequest,
    FinalGradingRecord,
    LlmContentRequest,
    ModelTier,
    PageResult,
    ProfileStatus,
    SiteSnapshot,
)
from app.features.grading.schemas.observation import GradeObservation, GradePhase

__all__ = [
    "CATEGORY_NAMES",
    "CacheEntry",
    "Frame",
    "GradingRecord",
    "GradingRequest",
    "FinalGradingRecord",
    "LlmContentRequest",
    "ModelTier",
    "PageResult",
    "ProfileStatus",
    "SiteSnapshot",
    "GradeObservation",
    "GradePhase",
]
