"""Health check endpoints."""

from fastapi import APIRouter, Request

from postcomment.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - services wired and cache availability."""
    settings = get_settings()
    state = request.app.state
    services_ready = (
        getattr(state, "feed_service", None) is not None
        and getattr(state, "comment_service", None) is not None
    )
    cache = getattr(state, "cache", None)
    return {
        "status": "ready" if services_ready else "degraded",
        "environment": settings.environment,
        "debug": settings.debug,
        "cache_enabled": cache is not None and cache.enabled,
        "cache_available": cache is not None and cache.available,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
