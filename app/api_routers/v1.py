from fastapi import APIRouter

from app.features.grading.routes.cache import router as cache_router
from app.features.grading.routes.grade import router as grade_router
from app.features.grading.routes.scrape import router as scrape_router
from app.features.health.routes.health import router as health_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(grade_router)
api_router.include_router(scrape_router)
api_router.include_router(cache_router)
api_router.include_router(health_router)
