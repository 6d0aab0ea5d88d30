from functools import lru_cache

from app.features.grading.services.content_fetcher import ExaContentFetcher
from app.features.grading.services.grade_cache import GradeCacheStore
from app.features.grading.services.grader import WebsiteGrader
from app.features.grading.services.orchestrator import GradeOrchestrator
from app.features.grading.services.stream_consumer import (
    GradingStreamConsumer,
    GradingTransport,
    HttpGradingTransport,
    LocalGradingTransport,
)
from app.platform.cache.redis import get_redis
from app.platform.config import settings


@lru_cache
def get_grader() -> WebsiteGrader:
    return WebsiteGrader()


@lru_cache
def get_content_fetcher() -> ExaContentFetcher:
    return ExaContentFetcher()


def get_cache_store() -> GradeCacheStore:
    return GradeCacheStore(get_redis())


def build_transport() -> GradingTransport:
    if settings.GRADING_TRANSPORT == "http":
        return HttpGradingTransport()
    return LocalGradingTransport(get_grader())


@lru_cache
def get_orchestrator() -> GradeOrchestrator:
    """
    Shared orchestrator for the process.

    It owns the pending cache-write tasks, which the app awaits on shutdown,
    so there is exactly one.
    """
    return GradeOrchestrator(
        cache=get_cache_store(),
        fetcher=get_content_fetcher(),
        consumer=GradingStreamConsumer(build_transport()),
    )
