"""
Grading stream consumer.

Reads the grading transport one line at a time, decodes each line into a
frame and republishes the most complete record seen so far. Records are
published in arrival order and only ever gain fields.
"""
from contextlib import aclosing
from typing import AsyncIterator, Optional, Protocol, Union

import httpx

from app.features.grading.schemas.grading import (
    GradingRecord,
    GradingRequest,
    LlmContentRequest,
    ModelTier,
)
from app.features.grading.services.frame_decoder import FrameDecodeError, FrameDecoder
from app.features.grading.services.grader import WebsiteGrader
from app.platform.config import settings
from app.platform.exceptions import GradingError, GradingRateLimited
from app.platform.logger import get_logger

logger = get_logger(__name__)

Line = Union[str, bytes]


class GradingTransport(Protocol):
    def lines(self, request: GradingRequest, tier: ModelTier) -> AsyncIterator[Line]:
        ...


class LocalGradingTransport:
    """Frames produced in-process by the grader."""

    def __init__(self, grader: Optional[WebsiteGrader] = None):
        self.grader = grader or WebsiteGrader()

    async def lines(self, request: GradingRequest, tier: ModelTier) -> AsyncIterator[Line]:
        async with aclosing(self.grader.stream_frames(request, tier)) as frames:
            async for frame in frames:
                yield frame


class HttpGradingTransport:
    """Frames read from a long-lived response body of the grading endpoint."""

    def __init__(
        self,
        url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or settings.GRADING_API_URL
        self.timeout = timeout or settings.GRADING_TIMEOUT
        self._http_client = http_client

    async def lines(self, request: GradingRequest, tier: ModelTier) -> AsyncIterator[Line]:
        body = LlmContentRequest(
            **request.model_dump(exclude={"model_tier"}), model_tier=tier
        ).model_dump(mode="json")
        client = self._http_client or httpx.AsyncClient(timeout=self.timeout)

        try:
            async with client.stream("POST", self.url, json=body) as response:
                if response.status_code == 429:
                    raise GradingRateLimited(f"Grading endpoint rate limited the {tier.value} model")
                if response.is_error:
                    raise GradingError(f"Grading endpoint returned {response.status_code}")

                async for line in response.aiter_lines():
                    yield line
        except httpx.HTTPError as e:
            raise GradingError(f"Grading stream failed: {e}") from e
        finally:
            if self._http_client is None:
                await client.aclose()


class GradingStreamConsumer:
    def __init__(self, transport: GradingTransport, decoder: Optional[FrameDecoder] = None):
        self.transport = transport
        self.decoder = decoder or FrameDecoder()

    async def stream(self, request: GradingRequest) -> AsyncIterator[GradingRecord]:
        """
        Yield progressively more complete grading records.

        A rate-limited first request is retried once on the fallback model.
        Raises GradingError when the stream fails or yields no readable frame.
        """
        published = False

        try:
            async with aclosing(self._stream_tier(request, ModelTier.PRIMARY)) as records:
                async for record in records:
                    published = True
                    yield record
            return
        except GradingRateLimited as e:
            if published:
                raise GradingError("Grading stream was cut off by rate limiting") from e
            logger.warning(f"Primary grading model rate limited for {request.url}; using fallback")

        try:
            async with aclosing(self._stream_tier(request, ModelTier.FALLBACK)) as records:
                async for record in records:
                    yield record
        except GradingRateLimited as e:
            raise GradingError("Grading is rate limited, please try again shortly") from e

    async def _stream_tier(self, request: GradingRequest, tier: ModelTier) -> AsyncIterator[GradingRecord]:
        latest: Optional[GradingRecord] = None
        frames = skipped = 0

        async with aclosing(self.transport.lines(request, tier)) as lines:
            async for line in lines:
                if not line.strip():
                    continue

                try:
                    frame = self.decoder.decode(line)
                except FrameDecodeError as e:
                    skipped += 1
                    logger.warning(f"Skipping malformed grading frame for {request.url}: {e}")
                    continue

                latest = frame.result if latest is None else latest.merged_with(frame.result)
                frames += 1
                yield latest

        if latest is None:
            raise GradingError("Failed to analyze content. The grading stream was empty.")

        logger.info(f"Grading stream for {request.url} ended: {frames} frame(s), {skipped} skipped")
