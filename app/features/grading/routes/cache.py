from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.features.grading.dependencies.grading import get_cache_store
from app.features.grading.schemas.grading import CacheEntry
from app.features.grading.services.grade_cache import GradeCacheStore
from app.platform.response import api_response
from app.platform.utils.url_validator import normalize_url

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("")
async def lookup_grade(
    url: str = Query(..., description="Website URL, with or without scheme"),
    store: GradeCacheStore = Depends(get_cache_store),
):
    entry = await store.lookup(normalize_url(url))

    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Grade not cached")

    return api_response(data=entry.model_dump(mode="json", by_alias=True), message="Cache hit")


@router.post("")
async def save_grade(
    entry: CacheEntry,
    store: GradeCacheStore = Depends(get_cache_store),
):
    """Store a finished grade, replacing anything cached for the same URL."""
    entry.url = normalize_url(entry.url)
    await store.write(entry)

    return api_response(
        data={"url": entry.url},
        message="Grade cached",
        status_code=status.HTTP_201_CREATED,
    )
