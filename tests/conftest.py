"""
Test configuration and fixtures for the Site Upgrade API.

Provides in-memory stand-ins for the three external collaborators (cache
store, content fetcher, grading transport) so runs can be driven without
Redis, Exa or Anthropic.
"""

import asyncio
import json
import os
from typing import Generator

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("EXA_API_KEY", "test-exa-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")

import pytest
from fastapi.testclient import TestClient

from app.features.grading.schemas.grading import (
    CacheEntry,
    GradingRecord,
    ModelTier,
    SiteSnapshot,
)
from app.platform.exceptions import CacheError


@pytest.fixture(autouse=True)
def reset_sse_exit_event():
    """sse-starlette keeps a process-wide exit event bound to the loop that created it."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    Dependency overrides are cleared after each test.
    """
    with TestClient(test_app) as test_client:
        yield test_client
    test_app.dependency_overrides.clear()


# ============================================================================
# Sample data
# ============================================================================

def _category(score: int) -> dict:
    return {
        "score": score,
        "findings": ["Finding one", "Finding two", "Finding three"],
        "recommendation": "Do the thing",
    }


FINAL_RECORD = {
    "overall_score": 82,
    "grade_letter": "A",
    "summary": "A solid site with room to tighten SEO.",
    "categories": {
        "performance": _category(80),
        "mobile": _category(85),
        "seo": _category(70),
        "content": _category(90),
    },
    "top_improvements": [
        {
            "priority": priority,
            "title": f"Improvement {i}",
            "description": "Change something specific",
            "impact": "Better conversions",
        }
        for i, priority in enumerate(["high", "high", "medium", "medium", "low"], start=1)
    ],
    "upgrade_prompt": "I need help upgrading my website example.com.",
}


@pytest.fixture
def final_record() -> dict:
    return json.loads(json.dumps(FINAL_RECORD))


@pytest.fixture
def streamed_frames(final_record):
    """Three frames of a typical run: summary first, then categories, then everything."""
    first = {"summary": final_record["summary"]}
    second = {
        "overall_score": 82,
        "grade_letter": "A",
        "summary": final_record["summary"],
        "categories": {"performance": final_record["categories"]["performance"]},
    }
    return [frame_line(first), frame_line(second), frame_line(final_record)]


def frame_line(record: dict) -> str:
    return json.dumps({"result": record})


@pytest.fixture
def make_frame():
    return frame_line


@pytest.fixture
def site_snapshot() -> SiteSnapshot:
    return SiteSnapshot(
        results=[
            {"url": "https://example.com", "title": "Example", "image": "https://example.com/og.png",
             "text": "Welcome to Example"},
            {"url": "https://example.com/about", "title": "About", "text": "About us"},
        ]
    )


@pytest.fixture
def profile_snapshot() -> SiteSnapshot:
    return SiteSnapshot(
        results=[{"url": "https://linkedin.com/company/example", "title": "Example | LinkedIn",
                  "text": "Example Inc. 50 employees"}]
    )


@pytest.fixture
def cache_entry(site_snapshot, profile_snapshot, final_record) -> CacheEntry:
    return CacheEntry(
        url="example.com",
        site_snapshot=site_snapshot,
        profile_snapshot=profile_snapshot,
        grading_record=GradingRecord.model_validate(final_record),
    )


# ============================================================================
# Fakes
# ============================================================================

class FakeCacheStore:
    def __init__(self, entries=None, fail_lookup=False, fail_write=False):
        self.entries = dict(entries or {})
        self.fail_lookup = fail_lookup
        self.fail_write = fail_write
        self.lookups = []
        self.writes = []

    async def lookup(self, url):
        self.lookups.append(url)
        if self.fail_lookup:
            raise CacheError("redis is down")
        return self.entries.get(url)

    async def write(self, entry):
        if self.fail_write:
            raise CacheError("redis is down")
        self.writes.append(entry)
        self.entries[entry.url] = entry


class FakeFetcher:
    def __init__(self, site=None, profile=None, site_error=None, profile_error=None):
        self.site = site if site is not None else SiteSnapshot()
        self.profile = profile if profile is not None else SiteSnapshot()
        self.site_error = site_error
        self.profile_error = profile_error
        self.calls = []

    async def fetch_site(self, url):
        self.calls.append(("site", url))
        if self.site_error:
            raise self.site_error
        return self.site

    async def fetch_profile(self, url):
        self.calls.append(("profile", url))
        if self.profile_error:
            raise self.profile_error
        return self.profile

    async def fetch_both(self, url):
        site, profile = await asyncio.gather(
            self.fetch_site(url), self.fetch_profile(url), return_exceptions=True
        )
        return site, profile


class FakeTransport:
    """
    Scripted grading transport. Each tier maps to a list of lines, or to an
    exception raised when the request is opened. Exceptions inside a line
    list are raised mid-stream.
    """

    def __init__(self, scripts):
        self.scripts = scripts
        self.calls = []
        self.closed = []

    async def lines(self, request, tier):
        self.calls.append((request, tier))
        script = self.scripts.get(tier, [])
        if isinstance(script, BaseException):
            raise script
        try:
            for line in script:
                if isinstance(line, BaseException):
                    raise line
                await asyncio.sleep(0)
                yield line
        finally:
            self.closed.append(tier)


@pytest.fixture
def fake_cache():
    return FakeCacheStore


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def primary():
    return ModelTier.PRIMARY


def parse_sse(text: str):
    """Split an SSE body into (event, data) pairs, skipping comments/pings."""
    events = []
    event, data = None, None
    for line in text.splitlines():
        if not line:
            if data is not None:
                events.append((event or "message", json.loads(data)))
            event, data = None, None
        elif line.startswith(":"):
            continue
        elif line.startswith("event:"):
            event = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data = line[len("data:"):].strip()
    if data is not None:
        events.append((event or "message", json.loads(data)))
    return events


@pytest.fixture
def sse_parser():
    return parse_sse
