"""
Exa-backed content fetcher.

Scrapes the graded site (main page plus subpages) and looks up the
company's LinkedIn page. The two calls are always issued together and
fail independently of each other.
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
from pydantic import ValidationError

from app.features.grading.schemas.grading import SiteSnapshot
from app.platform.config import settings
from app.platform.exceptions import FetchError
from app.platform.logger import get_logger

logger = get_logger(__name__)

SUBPAGE_TARGETS = ["about", "pricing", "products", "services", "blog", "contact"]

FetchOutcome = Union[SiteSnapshot, BaseException]


class ExaContentFetcher:
    """Thin client over the Exa `/contents` and `/search` endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key or settings.EXA_API_KEY
        self.base_url = (base_url or settings.EXA_BASE_URL).rstrip("/")
        self._http_client = http_client

    async def fetch_site(self, url: str) -> SiteSnapshot:
        """Main page first, then its subpages in crawl order."""
        payload = {
            "urls": [f"https://{url}"],
            "text": {"maxCharacters": settings.EXA_MAX_CHARACTERS},
            "livecrawl": "fallback",
            "subpages": settings.EXA_SUBPAGES,
            "subpageTarget": SUBPAGE_TARGETS,
        }
        data = await self._post("/contents", payload, target=url)
        return self._snapshot(self._flatten_subpages(data.get("results") or []), target=url)

    async def fetch_profile(self, url: str) -> SiteSnapshot:
        """Best-matching LinkedIn company page for the domain."""
        payload = {
            "query": f"{url} company page",
            "category": "company",
            "includeDomains": ["linkedin.com"],
            "numResults": 1,
            "contents": {"text": {"maxCharacters": settings.EXA_MAX_CHARACTERS}},
        }
        data = await self._post("/search", payload, target=url)
        return self._snapshot(data.get("results") or [], target=url)

    async def fetch_both(self, url: str) -> Tuple[FetchOutcome, FetchOutcome]:
        """
        Scrape site and profile concurrently.

        Returns (site, profile) where each item is either a SiteSnapshot or
        the exception that sub-fetch failed with. Nothing is raised.
        """
        site, profile = await asyncio.gather(
            self.fetch_site(url),
            self.fetch_profile(url),
            return_exceptions=True,
        )
        return site, profile

    async def _post(self, path: str, payload: Dict[str, Any], target: str) -> Dict[str, Any]:
        if not self.api_key:
            raise FetchError("EXA_API_KEY is not configured")

        headers = {"x-api-key": self.api_key, "Content-Type": "application/json"}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    f"{self.base_url}{path}", json=payload, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=settings.EXA_TIMEOUT) as client:
                    response = await client.post(
                        f"{self.base_url}{path}", json=payload, headers=headers
                    )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Exa {path} returned {e.response.status_code} for {target}")
            raise FetchError(f"Failed to fetch content for {target}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Exa {path} request failed for {target}: {e}")
            raise FetchError(f"Failed to fetch content for {target}") from e

        if not isinstance(data, dict):
            raise FetchError(f"Unexpected response from content provider for {target}")

        logger.info(f"Exa {path} returned {len(data.get('results') or [])} result(s) for {target}")
        return data

    @staticmethod
    def _flatten_subpages(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        pages = []
        for result in results:
            if not isinstance(result, dict):
                continue
            subpages = result.get("subpages") or []
            pages.append({k: v for k, v in result.items() if k != "subpages"})
            pages.extend(subpages)
        return pages

    @staticmethod
    def _snapshot(results: List[Any], target: str) -> SiteSnapshot:
        try:
            return SiteSnapshot(results=results)
        except ValidationError as e:
            raise FetchError(f"Unexpected response from content provider for {target}") from e
