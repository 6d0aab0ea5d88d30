from fastapi import APIRouter, Depends

from app.features.grading.dependencies.grading import get_content_fetcher
from app.features.grading.schemas.grading import ScrapeRequest
from app.features.grading.services.content_fetcher import ExaContentFetcher
from app.platform.response import api_response
from app.platform.utils.url_validator import normalize_url

router = APIRouter(prefix="/scrape", tags=["scrape"])


@router.post("/website")
async def scrape_website(
    body: ScrapeRequest,
    fetcher: ExaContentFetcher = Depends(get_content_fetcher),
):
    """Main page and subpages of the site, in crawl order."""
    snapshot = await fetcher.fetch_site(normalize_url(body.url))
    return api_response(data=snapshot, message="Website content retrieved")


@router.post("/profile")
async def scrape_profile(
    body: ScrapeRequest,
    fetcher: ExaContentFetcher = Depends(get_content_fetcher),
):
    snapshot = await fetcher.fetch_profile(normalize_url(body.url))
    return api_response(data=snapshot, message="Profile content retrieved")
