"""Comment system service layer.

Business logic for:
- Comment CRUD with threading support and the reply depth cap
- Flat, tree and keyset-paged sibling views
- Cache reads and invalidation for comment views

Cache coherence: every comment write drops ``comments:tree:{post_id}``. The
``comments:top`` and ``comments:count`` views are left to expire with their
(short, configurable) TTLs.
"""

from typing import TYPE_CHECKING

from postcomment.core.cache import CacheCoordinator, CacheKeys
from postcomment.core.exceptions import InvalidRelationError, NotFoundError
from postcomment.core.ids import SnowflakeIdGenerator, utc_now_ms
from postcomment.core.logging import get_logger
from postcomment.core.pagination import SENTINEL_ID, CursorPaginator, is_sentinel

from .models import Comment, create_comment
from .repository import SiblingScope
from .schemas import (
    COMMENT_LIST_ADAPTER,
    COMMENT_TREE_ADAPTER,
    COUNT_ADAPTER,
    CommentResponse,
    CommentTreeNode,
)
from .tree import build_comment_tree


if TYPE_CHECKING:
    from postcomment.posts.repository import PostRepository

    from .repository import CommentRepository


logger = get_logger(__name__)


class CommentService:
    """Service for comment management."""

    def __init__(
        self,
        comments: "CommentRepository",
        posts: "PostRepository",
        cache: CacheCoordinator,
        ids: SnowflakeIdGenerator,
        paginator: CursorPaginator | None = None,
    ):
        self.comments = comments
        self.posts = posts
        self.cache = cache
        self.ids = ids
        self.paginator = paginator or CursorPaginator()

    async def _require_post(self, post_id: int) -> None:
        if await self.posts.get(post_id) is None:
            raise NotFoundError("Post", post_id)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_comments_flat(self, post_id: int) -> list[CommentResponse]:
        """All comments of a post, oldest first."""
        await self._require_post(post_id)
        comments = await self.comments.list_for_post(post_id)
        return [CommentResponse.from_comment(comment) for comment in comments]

    async def get_comment_tree(self, post_id: int) -> list[CommentTreeNode]:
        """Nested reply forest, cached under ``comments:tree:{post_id}``."""

        async def load() -> list[CommentTreeNode]:
            await self._require_post(post_id)
            comments = await self.comments.list_for_post(post_id)
            return build_comment_tree(comments)

        return await self.cache.read(
            CacheKeys.comment_tree(post_id), load, COMMENT_TREE_ADAPTER
        )

    async def get_previous_comments(
        self, post_id: int, last_comment_id: int = SENTINEL_ID
    ) -> list[CommentResponse]:
        """Up to a page of siblings older than ``last_comment_id``.

        Siblings share the reference's post and parent. The sentinel returns
        the latest top-level comments, cached under ``comments:top:{post_id}``.
        """
        if is_sentinel(last_comment_id):

            async def load_top() -> list[CommentResponse]:
                await self._require_post(post_id)
                scope = SiblingScope(self.comments, post_id, parent_id=None)
                page = await self.paginator.next_page(scope, last_comment_id)
                return [CommentResponse.from_comment(c) for c in page]

            return await self.cache.read(
                CacheKeys.top_comments(post_id), load_top, COMMENT_LIST_ADAPTER
            )

        reference = await self.comments.get(last_comment_id)
        if reference is None or reference.post_id != post_id:
            raise NotFoundError("Comment", last_comment_id)

        scope = SiblingScope.around(self.comments, reference)
        page = await self.paginator.next_page(scope, last_comment_id)
        return [CommentResponse.from_comment(c) for c in page]

    async def get_comment_count(self, post_id: int) -> int:
        """Number of comments on a post, cached as a decimal string."""

        async def load() -> int:
            await self._require_post(post_id)
            return await self.comments.count_for_post(post_id)

        return await self.cache.read(
            CacheKeys.comment_count(post_id), load, COUNT_ADAPTER
        )

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def create_comment(
        self,
        post_id: int,
        content: str,
        author_id: int,
        parent_id: int | None = None,
    ) -> CommentResponse:
        """Create a comment, attaching deep replies to the grandparent.

        A reply to a comment that is itself a reply is stored under that
        comment's parent, so rendered threads never exceed three levels.

        Raises:
            NotFoundError: Post does not exist.
            InvalidRelationError: Parent is absent or belongs to another post.
        """
        await self._require_post(post_id)

        effective_parent_id = None
        if parent_id is not None:
            parent = await self.comments.get(parent_id)
            if parent is None or parent.post_id != post_id:
                raise InvalidRelationError(
                    f"Parent comment '{parent_id}' does not belong to post '{post_id}'."
                )
            effective_parent_id = self._attach_point(parent)
            if effective_parent_id != parent_id:
                logger.info(
                    "comment_reparented",
                    post_id=post_id,
                    requested_parent_id=parent_id,
                    parent_id=effective_parent_id,
                )

        comment = create_comment(
            comment_id=self.ids.next_id(),
            post_id=post_id,
            author_id=author_id,
            content=content,
            parent_id=effective_parent_id,
        )
        await self.comments.insert(comment)
        await self.cache.invalidate(CacheKeys.comment_tree(post_id))

        logger.info(
            "comment_created",
            comment_id=comment.comment_id,
            post_id=post_id,
            parent_id=effective_parent_id,
        )
        return CommentResponse.from_comment(comment)

    @staticmethod
    def _attach_point(parent: Comment) -> int:
        if parent.parent_id is not None:
            return parent.parent_id
        return parent.comment_id

    async def update_comment(
        self,
        comment_id: int,
        content: str,
        caller_id: int,
        is_admin: bool = False,
    ) -> CommentResponse:
        """Replace a comment's content. Owner or admin only.

        Raises:
            NotFoundError: Comment is absent or the caller may not modify it.
        """
        comment = await self._get_owned(comment_id, caller_id, is_admin)

        comment.content = content
        comment.updated_at = utc_now_ms()
        await self.comments.update(comment)
        await self.cache.invalidate(CacheKeys.comment_tree(comment.post_id))

        logger.info("comment_updated", comment_id=comment_id, by_admin=is_admin)
        return CommentResponse.from_comment(comment)

    async def delete_comment(
        self, comment_id: int, caller_id: int, is_admin: bool = False
    ) -> None:
        """Delete a comment. Owner or admin only.

        Raises:
            NotFoundError: Comment is absent or the caller may not modify it.
        """
        comment = await self._get_owned(comment_id, caller_id, is_admin)

        await self.comments.delete(comment)
        await self.cache.invalidate(CacheKeys.comment_tree(comment.post_id))

        logger.info("comment_deleted", comment_id=comment_id, by_admin=is_admin)

    async def _get_owned(
        self, comment_id: int, caller_id: int, is_admin: bool
    ) -> Comment:
        comment = await self.comments.get(comment_id)
        if comment is None:
            raise NotFoundError("Comment", comment_id)
        if not is_admin and comment.author_id != caller_id:
            logger.warning(
                "comment_mutation_denied", comment_id=comment_id, caller_id=caller_id
            )
            raise NotFoundError("Comment", comment_id)
        return comment
