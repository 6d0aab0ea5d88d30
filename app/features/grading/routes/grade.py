"""
Grade routes.

`POST /grade` turns raw user input into the per-site page path, the
`/stream` endpoint runs a grading pass and pushes each step to the browser
over Server-Sent Events, and `POST /grade/llm-content` is the grading call
itself, streamed as newline-delimited JSON frames.
"""
import json
from contextlib import aclosing
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sse_starlette.sse import EventSourceResponse

from app.features.grading.dependencies.grading import get_grader, get_orchestrator
from app.features.grading.schemas.grading import (
    GradeStartRequest,
    GradeStartResponse,
    LlmContentRequest,
)
from app.features.grading.services.grader import WebsiteGrader
from app.features.grading.services.orchestrator import GradeOrchestrator
from app.platform.exceptions import GradingError, ValidationError
from app.platform.logger import get_logger
from app.platform.response import STREAM_HEADERS, api_response, ndjson_response
from app.platform.utils.url_validator import normalize_url, validate_url

logger = get_logger(__name__)

router = APIRouter(prefix="/grade", tags=["grade"])


@router.post("")
async def start_grade(body: GradeStartRequest):
    is_valid, cleaned_url, error_message = validate_url(body.url)

    if not is_valid:
        raise ValidationError(error_message)

    return api_response(
        data=GradeStartResponse(
            url=cleaned_url,
            path=f"/{cleaned_url}",
            stream_url=f"/api/v1/grade/{cleaned_url}/stream",
        ),
        message="Website URL accepted",
    )


@router.post("/llm-content")
async def llm_content(
    body: LlmContentRequest,
    grader: WebsiteGrader = Depends(get_grader),
):
    """
    Grade scraped content and stream `{"result": ...}` lines as the record fills in.

    The first frame is awaited before responding so a rate-limited model
    surfaces as a 429 instead of an empty stream.
    """
    frames = grader.stream_frames(body, body.model_tier)

    try:
        first: Optional[bytes] = await frames.__anext__()
    except StopAsyncIteration:
        first = None
    except GradingError:
        await frames.aclose()
        raise

    return ndjson_response(_replay(first, frames, body.url))


async def _replay(first: Optional[bytes], frames: AsyncIterator[bytes], url: str) -> AsyncIterator[bytes]:
    async with aclosing(frames):
        if first is not None:
            yield first
        try:
            async for frame in frames:
                yield frame
        except GradingError as e:
            logger.error(f"Grading stream for {url} aborted: {e.message}")
            raise


async def grade_events(orchestrator: GradeOrchestrator, url: str) -> AsyncGenerator[dict, None]:
    """
    One SSE event per orchestrator observation; the event name is the phase.
    The stream closes after `done` or `failed`.
    """
    try:
        async with aclosing(orchestrator.run(url)) as observations:
            async for observation in observations:
                yield {
                    "event": observation.phase.value,
                    "data": observation.model_dump_json(exclude_none=True),
                }
                if observation.is_terminal:
                    logger.info(f"SSE: Grading of {url} finished with {observation.phase.value}")
    except Exception as e:
        logger.error(f"SSE: Error grading {url}: {e}", exc_info=True)
        yield {
            "event": "error",
            "data": json.dumps({"error": "Failed to analyze content. Please try again."}),
        }


@router.get(
    "/{websiteurl:path}/stream",
    summary="Grade a website (SSE)",
    description="""
    Runs a grading pass for the website and streams every step.

    **Event types** (event name = phase): `cache_checking`, `cache_hit`,
    `cache_miss`, `scraping`, `scrape_failed`, `grading`, `streaming`,
    `grading_failed`, then exactly one of `done` or `failed`.

    `streaming` events carry the latest `grading_record`; each one is at
    least as complete as the one before it.
    """,
)
async def stream_grade(
    websiteurl: str,
    orchestrator: GradeOrchestrator = Depends(get_orchestrator),
):
    url = normalize_url(websiteurl)
    logger.info(f"SSE: Client connected for {url}")

    return EventSourceResponse(
        grade_events(orchestrator, url),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.get("/{websiteurl:path}")
async def get_grade(
    websiteurl: str,
    orchestrator: GradeOrchestrator = Depends(get_orchestrator),
):
    entry = await orchestrator.cached_result(websiteurl)

    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No grade found for {normalize_url(websiteurl)}",
        )

    return api_response(data=entry.model_dump(mode="json"), message="Grade retrieved")
