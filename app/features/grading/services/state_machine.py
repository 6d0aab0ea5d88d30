from typing import Any, Dict, List, Optional

from app.features.grading.schemas.observation import GradeObservation, GradePhase

TRANSITIONS = {
    GradePhase.IDLE: {GradePhase.CACHE_CHECKING},
    GradePhase.CACHE_CHECKING: {GradePhase.CACHE_HIT, GradePhase.CACHE_MISS},
    GradePhase.CACHE_HIT: {GradePhase.DONE},
    GradePhase.CACHE_MISS: {GradePhase.SCRAPING},
    GradePhase.SCRAPING: {GradePhase.SCRAPE_FAILED, GradePhase.GRADING},
    GradePhase.SCRAPE_FAILED: {GradePhase.FAILED},
    GradePhase.GRADING: {GradePhase.STREAMING, GradePhase.GRADING_FAILED},
    GradePhase.STREAMING: {GradePhase.STREAMING, GradePhase.GRADING_FAILED, GradePhase.DONE},
    GradePhase.GRADING_FAILED: {GradePhase.FAILED},
    GradePhase.DONE: set(),
    GradePhase.FAILED: set(),
}


class InvalidTransition(RuntimeError):
    pass


class GradeStateMachine:
    """
    Tracks one grading run. Each external event (cache response, scrape
    settle, stream frame, stream end) moves it exactly one step.
    """

    def __init__(self):
        self.phase = GradePhase.IDLE
        self.history: List[GradePhase] = [GradePhase.IDLE]

    def advance(
        self,
        phase: GradePhase,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
    ) -> GradeObservation:
        if phase not in TRANSITIONS[self.phase]:
            raise InvalidTransition(f"Cannot move from {self.phase.value} to {phase.value}")

        self.phase = phase
        self.history.append(phase)

        return GradeObservation(
            phase=phase,
            data=data,
            error=_error_message(error),
            error_type=type(error).__name__ if error is not None else None,
        )

    @property
    def finished(self) -> bool:
        return not TRANSITIONS[self.phase]


def _error_message(error: Optional[BaseException]) -> Optional[str]:
    if error is None:
        return None
    return getattr(error, "message", None) or str(error)
