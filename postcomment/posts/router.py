"""Post and feed API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from postcomment.core.dependencies import CurrentCaller, handle_app_error
from postcomment.core.exceptions import AppError
from postcomment.core.pagination import SENTINEL_ID

from .dependencies import FeedServiceDep
from .schemas import PostContentRequest, PostQuery, PostResponse


router = APIRouter(prefix="/v1/posts", tags=["posts"])
users_router = APIRouter(prefix="/v1/users", tags=["posts"])


@router.get("", response_model=list[PostResponse], summary="Latest posts")
async def get_latest_posts(feed_service: FeedServiceDep) -> list[PostResponse]:
    """Most recent page of the global feed."""
    return await feed_service.get_feed_page(SENTINEL_ID)


@router.get(
    "/next/{last_post_id}",
    response_model=list[PostResponse],
    summary="Posts older than a post",
)
async def get_next_posts(
    last_post_id: int, feed_service: FeedServiceDep
) -> list[PostResponse]:
    """Next feed page after ``last_post_id`` (infinite scroll)."""
    try:
        return await feed_service.get_feed_page(last_post_id)
    except AppError as e:
        raise handle_app_error(e) from e


@router.get("/search", response_model=list[PostResponse], summary="Search posts")
async def search_posts(
    query: Annotated[PostQuery, Query()], feed_service: FeedServiceDep
) -> list[PostResponse]:
    """Filter by keyword and creation window, sorted, offset paginated."""
    return await feed_service.filter_posts(query)


@router.get("/{post_id}", response_model=PostResponse, summary="Get post")
async def get_post(post_id: int, feed_service: FeedServiceDep) -> PostResponse:
    """Single post."""
    try:
        return await feed_service.get_post(post_id)
    except AppError as e:
        raise handle_app_error(e) from e


@router.post(
    "",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create post",
)
async def create_post(
    data: PostContentRequest, feed_service: FeedServiceDep, caller: CurrentCaller
) -> PostResponse:
    """Create a post owned by the caller."""
    return await feed_service.create_post(
        title=data.title, content=data.content, author_id=caller.user_id
    )


@router.put("/{post_id}", response_model=PostResponse, summary="Update post")
async def update_post(
    post_id: int,
    data: PostContentRequest,
    feed_service: FeedServiceDep,
    caller: CurrentCaller,
) -> PostResponse:
    """Update a post. Owner or admin; anyone else gets 404."""
    try:
        return await feed_service.update_post(
            post_id,
            title=data.title,
            content=data.content,
            caller_id=caller.user_id,
            is_admin=caller.is_admin,
        )
    except AppError as e:
        raise handle_app_error(e) from e


@router.delete(
    "/{post_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete post"
)
async def delete_post(
    post_id: int, feed_service: FeedServiceDep, caller: CurrentCaller
) -> Response:
    """Delete a post and its comments. Owner or admin; anyone else gets 404."""
    try:
        await feed_service.delete_post(
            post_id, caller_id=caller.user_id, is_admin=caller.is_admin
        )
    except AppError as e:
        raise handle_app_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@users_router.get(
    "/{author_id}/posts",
    response_model=list[PostResponse],
    summary="Posts of an author",
)
async def get_author_posts(
    author_id: int,
    feed_service: FeedServiceDep,
    last_post_id: int = Query(default=SENTINEL_ID, ge=1),
) -> list[PostResponse]:
    """Keyset page of one author's posts."""
    try:
        return await feed_service.get_author_feed_page(author_id, last_post_id)
    except AppError as e:
        raise handle_app_error(e) from e
