"""
Website grader.

Asks the grading model to fill a forced tool call whose input schema is the
final grading record, and surfaces every partial tool-input snapshot as it
streams in. Each snapshot is a best-effort parse of the whole record so far.
"""
import json
from typing import Any, AsyncIterator, Dict, Optional

from anthropic import APIError, AsyncAnthropic, RateLimitError

from app.features.grading.schemas.grading import (
    FinalGradingRecord,
    GradingRequest,
    ModelTier,
    ProfileStatus,
)
from app.platform.config import settings
from app.platform.exceptions import GradingError, GradingRateLimited
from app.platform.logger import get_logger

logger = get_logger(__name__)

GRADE_TOOL_NAME = "record_website_grade"

SYSTEM_PROMPT = (
    "You are a professional website auditor who provides constructive, actionable feedback. "
    "Score fairly based on actual evidence from the website content. Be specific and helpful."
)

GRADE_TOOL = {
    "name": GRADE_TOOL_NAME,
    "description": "Record the complete website audit.",
    "input_schema": FinalGradingRecord.model_json_schema(),
}

AUDIT_INSTRUCTIONS = """Provide a professional website audit with these sections:

OVERALL SCORE (0-100)
Grade the website overall from 0-100. Use this scale:
- 90-100: A+ (Exceptional - industry-leading website)
- 80-89: A (Excellent - well-optimized, minor improvements possible)
- 70-79: B (Good - solid foundation, room for improvement)
- 60-69: C (Average - notable issues that need attention)
- 50-59: D (Below Average - significant problems)
- 0-49: F (Poor - major overhaul needed)

SUMMARY
Write a 2-3 sentence executive summary of the website's strengths and main areas for improvement.

PERFORMANCE (Score 0-100)
Evaluate page structure and organization, code cleanliness (based on content structure),
image optimization indicators and content loading patterns.
Give 3 specific findings and 1 key recommendation.

MOBILE (Score 0-100)
Evaluate content readability, navigation structure simplicity, touch-friendly element
patterns and responsive design indicators.
Give 3 specific findings and 1 key recommendation.

SEO (Score 0-100)
Evaluate title and heading structure, meta description quality, content keyword usage,
URL structure and internal linking.
Give 3 specific findings and 1 key recommendation.

CONTENT (Score 0-100)
Evaluate clarity of messaging, value proposition strength, call-to-action effectiveness,
content quality and depth, and brand consistency.
Give 3 specific findings and 1 key recommendation.

TOP 5 IMPROVEMENTS
List the 5 most impactful improvements, each with a priority level (high/medium/low),
a clear title, a specific description of what to do and the expected impact.

UPGRADE PROMPT
Write a detailed prompt that could be given to an AI assistant to help implement the
improvements. It must reference the website URL, include the top issues found, request
specific code or content changes and be ready to copy and paste. For example:
"I need help upgrading my website [URL]. Based on an audit, here are the issues to fix:
[issues]. Please help me: 1) [specific task] 2) [specific task] 3) [specific task].
Focus on [priority area] first."

RULES:
- Be professional and constructive, not sarcastic
- Provide specific, actionable feedback
- Base scores on actual website content analysis
- Make the upgrade prompt immediately usable
- Keep findings concise but specific"""


def build_prompt(request: GradingRequest) -> str:
    sections = [
        "You are a professional website auditor. Analyze this website and provide a "
        "comprehensive grade with actionable improvements.",
        f"WEBSITE URL: {request.url}",
    ]

    if request.profile_status == ProfileStatus.AVAILABLE:
        sections.append(f"LINKEDIN PROFILE:\n{json.dumps(request.profile_data, indent=2)}")
    elif request.profile_status == ProfileStatus.FAILED:
        sections.append(
            "LINKEDIN PROFILE: unavailable (the lookup failed). "
            "Do not penalize the site for it."
        )
    else:
        sections.append("LINKEDIN PROFILE: none found.")

    sections.append(f"SUBPAGES CONTENT:\n{json.dumps(request.subpages, indent=2)}")
    sections.append(f"WEBSITE CONTENT:\n{json.dumps(request.mainpage, indent=2)}")
    sections.append(AUDIT_INSTRUCTIONS)
    return "\n\n".join(sections)


def encode_frame(record: Dict[str, Any]) -> bytes:
    return (json.dumps({"result": record}) + "\n").encode("utf-8")


class WebsiteGrader:
    def __init__(self, client: Optional[AsyncAnthropic] = None):
        self._client = client

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            if not settings.ANTHROPIC_API_KEY:
                raise GradingError("ANTHROPIC_API_KEY is not configured")
            # A 429 goes straight to the caller, which owns the single fallback attempt
            self._client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY, max_retries=0)
        return self._client

    @staticmethod
    def model_for(tier: ModelTier) -> str:
        if tier == ModelTier.FALLBACK:
            return settings.GRADING_FALLBACK_MODEL
        return settings.GRADING_MODEL

    async def stream_partial_records(
        self,
        request: GradingRequest,
        tier: ModelTier = ModelTier.PRIMARY,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield the grading record as the model writes it.

        Raises:
            GradingRateLimited: the provider rejected the request with a 429
            GradingError: any other provider failure
        """
        model = self.model_for(tier)
        client = self.client
        logger.info(f"Grading {request.url} with {model}")

        try:
            async with client.messages.stream(
                model=model,
                max_tokens=settings.GRADING_MAX_TOKENS,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(request)}],
                tools=[GRADE_TOOL],
                tool_choice={"type": "tool", "name": GRADE_TOOL_NAME},
            ) as stream:
                async for event in stream:
                    if event.type == "input_json" and isinstance(event.snapshot, dict):
                        yield event.snapshot
        except RateLimitError as e:
            raise GradingRateLimited(f"Grading model {model} is rate limited") from e
        except APIError as e:
            logger.error(f"Grading request for {request.url} failed: {e}")
            raise GradingError(f"Website grade API failed | {e}") from e
        except Exception as e:
            # The SDK lets transport errors from the response body escape unwrapped
            logger.error(f"Grading stream for {request.url} broke off: {e!r}")
            raise GradingError(f"Website grade stream failed | {e}") from e

    async def stream_frames(
        self,
        request: GradingRequest,
        tier: ModelTier = ModelTier.PRIMARY,
    ) -> AsyncIterator[bytes]:
        async for record in self.stream_partial_records(request, tier):
            yield encode_frame(record)
