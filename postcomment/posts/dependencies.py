"""FastAPI dependencies for posts."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import FeedService


async def get_feed_service(request: Request) -> FeedService:
    """Get the feed service from app state."""
    service = getattr(request.app.state, "feed_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Feed service not available",
        )
    return service


FeedServiceDep = Annotated[FeedService, Depends(get_feed_service)]
