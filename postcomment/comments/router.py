"""Comment system API endpoints.

Provides routes for:
- Comment CRUD
- Flat, tree and paged views of a post's comments
- Comment counts
"""

from fastapi import APIRouter, Query, Response, status

from postcomment.core.dependencies import CurrentCaller, handle_app_error
from postcomment.core.exceptions import AppError
from postcomment.core.pagination import SENTINEL_ID

from .dependencies import CommentServiceDep
from .schemas import (
    CommentCountResponse,
    CommentResponse,
    CommentTreeNode,
    CreateCommentRequest,
    UpdateCommentRequest,
)


post_comments_router = APIRouter(
    prefix="/v1/posts/{post_id}/comments", tags=["comments"]
)
router = APIRouter(prefix="/v1/comments", tags=["comments"])


@post_comments_router.get(
    "/flat", response_model=list[CommentResponse], summary="Flat comments"
)
async def get_comments_flat(
    post_id: int, comment_service: CommentServiceDep
) -> list[CommentResponse]:
    """All comments of a post, oldest first."""
    try:
        return await comment_service.get_comments_flat(post_id)
    except AppError as e:
        raise handle_app_error(e) from e


@post_comments_router.get(
    "/tree", response_model=list[CommentTreeNode], summary="Comment tree"
)
async def get_comment_tree(
    post_id: int, comment_service: CommentServiceDep
) -> list[CommentTreeNode]:
    """Comments nested under their parents."""
    try:
        return await comment_service.get_comment_tree(post_id)
    except AppError as e:
        raise handle_app_error(e) from e


@post_comments_router.get(
    "/previous", response_model=list[CommentResponse], summary="Older comments"
)
async def get_previous_comments(
    post_id: int,
    comment_service: CommentServiceDep,
    last_comment_id: int = Query(default=SENTINEL_ID, ge=1),
) -> list[CommentResponse]:
    """Siblings older than ``last_comment_id``; latest top-level by default."""
    try:
        return await comment_service.get_previous_comments(post_id, last_comment_id)
    except AppError as e:
        raise handle_app_error(e) from e


@post_comments_router.get(
    "/count", response_model=CommentCountResponse, summary="Comment count"
)
async def get_comment_count(
    post_id: int, comment_service: CommentServiceDep
) -> CommentCountResponse:
    """Number of comments on a post."""
    try:
        count = await comment_service.get_comment_count(post_id)
    except AppError as e:
        raise handle_app_error(e) from e
    return CommentCountResponse(post_id=post_id, count=count)


@post_comments_router.post(
    "",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create comment",
)
async def create_comment(
    post_id: int,
    data: CreateCommentRequest,
    comment_service: CommentServiceDep,
    caller: CurrentCaller,
) -> CommentResponse:
    """Comment on a post, optionally replying to another comment."""
    try:
        return await comment_service.create_comment(
            post_id=post_id,
            content=data.content,
            author_id=caller.user_id,
            parent_id=data.parent_id,
        )
    except AppError as e:
        raise handle_app_error(e) from e


@router.put("/{comment_id}", response_model=CommentResponse, summary="Update comment")
async def update_comment(
    comment_id: int,
    data: UpdateCommentRequest,
    comment_service: CommentServiceDep,
    caller: CurrentCaller,
) -> CommentResponse:
    """Edit a comment. Owner or admin; anyone else gets 404."""
    try:
        return await comment_service.update_comment(
            comment_id,
            content=data.content,
            caller_id=caller.user_id,
            is_admin=caller.is_admin,
        )
    except AppError as e:
        raise handle_app_error(e) from e


@router.delete(
    "/{comment_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete comment"
)
async def delete_comment(
    comment_id: int, comment_service: CommentServiceDep, caller: CurrentCaller
) -> Response:
    """Delete a comment. Owner or admin; anyone else gets 404."""
    try:
        await comment_service.delete_comment(
            comment_id, caller_id=caller.user_id, is_admin=caller.is_admin
        )
    except AppError as e:
        raise handle_app_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
