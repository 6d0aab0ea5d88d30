from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class GradePhase(str, Enum):
    IDLE = "idle"
    CACHE_CHECKING = "cache_checking"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    SCRAPING = "scraping"
    SCRAPE_FAILED = "scrape_failed"
    GRADING = "grading"
    GRADING_FAILED = "grading_failed"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({GradePhase.DONE, GradePhase.FAILED})


class GradeObservation(BaseModel):
    """What the orchestrator publishes on every state transition."""
    phase: GradePhase
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES
