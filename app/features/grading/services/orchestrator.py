"""
Grade orchestration.

One run: cache lookup (with speculative scraping alongside it), then on a
miss the two scrapes, then the grading stream, then a background cache
write when the final record is complete. Every step is published as a
GradeObservation so the caller can render progress.
"""
import asyncio
from contextlib import aclosing
from typing import AsyncIterator, Optional, Set

from app.features.grading.schemas.grading import CacheEntry, GradingRecord, GradingRequest
from app.features.grading.schemas.observation import GradeObservation, GradePhase
from app.features.grading.services.content_fetcher import ExaContentFetcher
from app.features.grading.services.grade_cache import GradeCacheStore
from app.features.grading.services.state_machine import GradeStateMachine
from app.features.grading.services.stream_consumer import GradingStreamConsumer
from app.platform.config import settings
from app.platform.exceptions import CacheError, FetchError, GradingError
from app.platform.logger import get_logger
from app.platform.utils.url_validator import normalize_url

logger = get_logger(__name__)

SITE_FETCH_FAILED_MESSAGE = "Failed to load website data. Please check the URL and try again."


class GradeOrchestrator:
    def __init__(
        self,
        cache: GradeCacheStore,
        fetcher: ExaContentFetcher,
        consumer: GradingStreamConsumer,
        speculative_scrape: Optional[bool] = None,
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.consumer = consumer
        self.speculative_scrape = (
            settings.SPECULATIVE_SCRAPE if speculative_scrape is None else speculative_scrape
        )
        self._detached: Set[asyncio.Task] = set()
        self._pending_writes: Set[asyncio.Task] = set()

    async def run(self, url: str) -> AsyncIterator[GradeObservation]:
        """
        Grade a website, publishing one observation per state transition.

        The stream ends with a `done` or `failed` observation. Raises
        ValidationError before any network call if the URL isn't a
        plausible domain.
        """
        url = normalize_url(url)
        machine = GradeStateMachine()

        lookup = asyncio.create_task(self._lookup(url))
        scrapes = asyncio.create_task(self.fetcher.fetch_both(url)) if self.speculative_scrape else None

        try:
            yield machine.advance(GradePhase.CACHE_CHECKING, data={"url": url})
            entry = await lookup

            if entry is not None and entry.grading_record.is_complete():
                logger.info(f"Serving cached grade for {url}")
                if scrapes is not None:
                    self._detach(scrapes)
                    scrapes = None
                yield machine.advance(GradePhase.CACHE_HIT, data=entry.model_dump(mode="json"))
                yield machine.advance(
                    GradePhase.DONE,
                    data=_done_data(url, entry.grading_record, cached=True),
                )
                return

            if entry is not None:
                logger.info(f"Cached grade for {url} is incomplete; grading again")

            yield machine.advance(GradePhase.CACHE_MISS, data={"url": url})

            if scrapes is None:
                scrapes = asyncio.create_task(self.fetcher.fetch_both(url))
            yield machine.advance(GradePhase.SCRAPING, data={"url": url})
            site, profile = await scrapes
            scrapes = None

            if isinstance(site, BaseException):
                logger.error(f"Website scrape failed for {url}: {site}")
                error = FetchError(SITE_FETCH_FAILED_MESSAGE)
                yield machine.advance(GradePhase.SCRAPE_FAILED, error=error)
                yield machine.advance(GradePhase.FAILED, error=error)
                return

            profile_failed = isinstance(profile, BaseException)
            if profile_failed:
                logger.warning(f"Profile scrape failed for {url}, grading without it: {profile}")
                profile = None

            request = GradingRequest.from_snapshots(url, site, profile, profile_failed=profile_failed)
            yield machine.advance(
                GradePhase.GRADING,
                data={
                    "url": url,
                    "site_snapshot": site.model_dump(mode="json"),
                    "profile_snapshot": profile.model_dump(mode="json") if profile else None,
                    "profile_status": request.profile_status.value,
                },
            )

            record: Optional[GradingRecord] = None
            try:
                async with aclosing(self.consumer.stream(request)) as records:
                    async for record in records:
                        yield machine.advance(
                            GradePhase.STREAMING,
                            data={"grading_record": record.model_dump(mode="json", exclude_none=True)},
                        )
                if record is None:
                    raise GradingError("Failed to analyze content. Please try again.")
            except GradingError as e:
                logger.error(f"Grading failed for {url}: {e.message}")
                yield machine.advance(GradePhase.GRADING_FAILED, error=e)
                yield machine.advance(GradePhase.FAILED, error=e)
                return

            # Spawned before publishing `done`; the caller may stop reading there.
            if record.is_complete():
                if not record.is_final():
                    logger.warning(f"Final grade for {url} does not match the full schema")
                self._spawn_cache_write(
                    CacheEntry(
                        url=url,
                        site_snapshot=site,
                        profile_snapshot=profile,
                        grading_record=record,
                    )
                )
            else:
                logger.info(f"Grade for {url} is incomplete; not caching")

            yield machine.advance(GradePhase.DONE, data=_done_data(url, record, cached=False))
        finally:
            if not machine.finished:
                steps = " -> ".join(phase.value for phase in machine.history)
                logger.info(f"Grading run for {url} closed before finishing: {steps}")
            if not lookup.done():
                lookup.cancel()
            if scrapes is not None:
                self._detach(scrapes)

    async def cached_result(self, url: str) -> Optional[CacheEntry]:
        """The stored complete grade for a URL, if any."""
        entry = await self.cache.lookup(normalize_url(url))
        if entry is None or not entry.grading_record.is_complete():
            return None
        return entry

    async def wait_for_pending_writes(self) -> None:
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def _lookup(self, url: str) -> Optional[CacheEntry]:
        try:
            return await self.cache.lookup(url)
        except CacheError as e:
            logger.warning(f"Treating cache lookup failure as a miss: {e.message}")
            return None

    def _spawn_cache_write(self, entry: CacheEntry) -> None:
        task = asyncio.create_task(self._write(entry))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write(self, entry: CacheEntry) -> None:
        try:
            await self.cache.write(entry)
        except CacheError as e:
            logger.error(f"Failed to save grade for {entry.url}: {e.message}")
        except Exception:
            logger.exception(f"Unexpected error saving grade for {entry.url}")

    def _detach(self, task: asyncio.Task) -> None:
        """Let an in-flight scrape finish on its own; its result is ignored."""
        self._detached.add(task)
        task.add_done_callback(self._detached.discard)


def _done_data(url: str, record: GradingRecord, cached: bool) -> dict:
    return {
        "url": url,
        "grading_record": record.model_dump(mode="json", exclude_none=True),
        "cached": cached,
    }
