"""Post and feed service layer.

Business logic for:
- Post CRUD with owner-or-admin mutation rules
- Keyset feed pages (global and per author)
- Offset-based post search over the full date window
- Cache reads and invalidation for post views
"""

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING

from postcomment.core.cache import CacheCoordinator, CacheKeys
from postcomment.core.exceptions import NotFoundError
from postcomment.core.ids import SnowflakeIdGenerator, utc_now_ms
from postcomment.core.logging import get_logger
from postcomment.core.pagination import CursorPaginator, is_sentinel

from .models import Post, create_post
from .repository import AuthorFeedScope, GlobalFeedScope
from .schemas import POST_ADAPTER, POST_LIST_ADAPTER, PostQuery, PostResponse


if TYPE_CHECKING:
    from postcomment.comments.repository import CommentRepository

    from .repository import PostRepository


logger = get_logger(__name__)

# Title sorts need every match; feed-order sorts stop once the page is full
_TITLE_SORTS = {"title": False, "-title": True}


class FeedService:
    """Service for posts and post feeds."""

    def __init__(
        self,
        posts: "PostRepository",
        comments: "CommentRepository",
        cache: CacheCoordinator,
        ids: SnowflakeIdGenerator,
        paginator: CursorPaginator | None = None,
    ):
        self.posts = posts
        self.comments = comments
        self.cache = cache
        self.ids = ids
        self.paginator = paginator or CursorPaginator()

    # ==========================================================================
    # Feeds
    # ==========================================================================

    async def get_feed_page(self, last_post_id: int) -> list[PostResponse]:
        """Up to a page of posts older than ``last_post_id``.

        The sentinel id returns the latest page, served from ``post:latest``.
        """
        if is_sentinel(last_post_id):
            return await self.cache.read(
                CacheKeys.latest_posts(),
                lambda: self._load_feed_page(last_post_id),
                POST_LIST_ADAPTER,
            )
        return await self._load_feed_page(last_post_id)

    async def _load_feed_page(self, last_post_id: int) -> list[PostResponse]:
        page = await self.paginator.next_page(GlobalFeedScope(self.posts), last_post_id)
        return [PostResponse.from_post(post) for post in page]

    async def get_author_feed_page(
        self, author_id: int, last_post_id: int
    ) -> list[PostResponse]:
        """Keyset page of one author's posts. Not cached."""
        page = await self.paginator.next_page(
            AuthorFeedScope(self.posts, author_id), last_post_id
        )
        return [PostResponse.from_post(post) for post in page]

    async def filter_posts(self, query: PostQuery) -> list[PostResponse]:
        """Keyword/date filtered posts with sorting and offset pagination.

        Every post in the date window is considered. Creation-time sorts
        read the feed in the requested direction and stop after the page.
        """
        needle = query.keyword.casefold() if query.keyword else None
        stream = self.posts.iter_feed_window(
            query.from_date, query.to_date, oldest_first=query.sort == "createdAt"
        )
        async with aclosing(stream) as posts:
            matches = (post async for post in posts if _matches(post, needle))
            if query.sort in _TITLE_SORTS:
                found = [post async for post in matches]
                found.sort(key=lambda p: p.title, reverse=_TITLE_SORTS[query.sort])
                window = found[query.offset : query.offset + query.limit]
            else:
                window = await _take(matches, query.offset, query.limit)
        return [PostResponse.from_post(post) for post in window]

    # ==========================================================================
    # Post CRUD
    # ==========================================================================

    async def get_post(self, post_id: int) -> PostResponse:
        """Single post, cached under ``post:{id}``."""

        async def load() -> PostResponse:
            post = await self.posts.get(post_id)
            if post is None:
                raise NotFoundError("Post", post_id)
            return PostResponse.from_post(post)

        return await self.cache.read(CacheKeys.post(post_id), load, POST_ADAPTER)

    async def create_post(
        self, title: str, content: str, author_id: int
    ) -> PostResponse:
        """Create a post and drop the cached latest page."""
        post = create_post(
            post_id=self.ids.next_id(),
            author_id=author_id,
            title=title,
            content=content,
        )
        await self.posts.insert(post)
        await self.cache.invalidate(CacheKeys.latest_posts())

        logger.info("post_created", post_id=post.post_id, author_id=author_id)
        return PostResponse.from_post(post)

    async def update_post(
        self,
        post_id: int,
        title: str,
        content: str,
        caller_id: int,
        is_admin: bool = False,
    ) -> PostResponse:
        """Replace title and content. Owner or admin only.

        Raises:
            NotFoundError: Post is absent or the caller may not modify it.
        """
        post = await self._get_owned(post_id, caller_id, is_admin)

        post.title = title
        post.content = content
        post.updated_at = utc_now_ms()
        await self.posts.update(post)
        await self.cache.invalidate(CacheKeys.post(post_id), CacheKeys.latest_posts())

        logger.info("post_updated", post_id=post_id, by_admin=is_admin)
        return PostResponse.from_post(post)

    async def delete_post(
        self, post_id: int, caller_id: int, is_admin: bool = False
    ) -> None:
        """Delete a post and all of its comments. Owner or admin only.

        Raises:
            NotFoundError: Post is absent or the caller may not modify it.
        """
        post = await self._get_owned(post_id, caller_id, is_admin)

        removed = await self.comments.delete_for_post(post_id)
        await self.posts.delete(post)
        await self.cache.invalidate(
            CacheKeys.post(post_id),
            CacheKeys.latest_posts(),
            CacheKeys.comment_tree(post_id),
            CacheKeys.top_comments(post_id),
            CacheKeys.comment_count(post_id),
        )

        logger.info(
            "post_deleted", post_id=post_id, comments_removed=removed, by_admin=is_admin
        )

    async def _get_owned(self, post_id: int, caller_id: int, is_admin: bool) -> Post:
        post = await self.posts.get(post_id)
        if post is None:
            raise NotFoundError("Post", post_id)
        if not is_admin and post.author_id != caller_id:
            # Same answer as a missing post: existence is not revealed
            logger.warning(
                "post_mutation_denied", post_id=post_id, caller_id=caller_id
            )
            raise NotFoundError("Post", post_id)
        return post


def _matches(post: Post, needle: str | None) -> bool:
    if needle is None:
        return True
    return needle in post.title.casefold() or needle in post.content.casefold()


async def _take(posts: AsyncIterator[Post], offset: int, limit: int) -> list[Post]:
    """Skip ``offset`` posts, then collect up to ``limit``."""
    window: list[Post] = []
    skipped = 0
    async for post in posts:
        if skipped < offset:
            skipped += 1
            continue
        window.append(post)
        if len(window) == limit:
            break
    return window
