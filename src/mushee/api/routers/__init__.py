"""API routers."""

from fastapi import APIRouter

from mushee.api.routers import health, library, scores, suggestions

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(scores.router)
api_router.include_router(library.router)
api_router.include_router(suggestions.router)

__all__ = ["api_router"]
