"""Shared fixtures: in-memory repositories, a fake cache store and the app."""

import os


os.environ.setdefault("ENVIRONMENT", "testing")

from collections.abc import AsyncIterator, Callable  # noqa: E402
from dataclasses import replace  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from postcomment.comments.models import Comment  # noqa: E402
from postcomment.comments.service import CommentService  # noqa: E402
from postcomment.core.cache import CacheCoordinator, CacheTTLs  # noqa: E402
from postcomment.core.exceptions import CacheUnavailableError  # noqa: E402
from postcomment.core.ids import SnowflakeIdGenerator  # noqa: E402
from postcomment.core.pagination import CursorKey, order_page  # noqa: E402
from postcomment.main import create_app  # noqa: E402
from postcomment.posts.models import Post  # noqa: E402
from postcomment.posts.service import FeedService  # noqa: E402


BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


# ==============================================================================
# Fakes
# ==============================================================================


class InMemoryPostRepository:
    """PostRepository over a dict. Returns copies, like a real store."""

    def __init__(self):
        self.rows: dict[int, Post] = {}
        self.rows_streamed = 0

    def add(self, post: Post) -> Post:
        self.rows[post.post_id] = replace(post)
        return post

    async def get(self, post_id: int) -> Post | None:
        post = self.rows.get(post_id)
        return replace(post) if post else None

    async def insert(self, post: Post) -> None:
        self.add(post)

    async def update(self, post: Post) -> None:
        self.rows[post.post_id] = replace(post)

    async def delete(self, post: Post) -> None:
        self.rows.pop(post.post_id, None)

    async def fetch_feed(self, bound: CursorKey | None, limit: int) -> list[Post]:
        return [replace(p) for p in order_page(self.rows.values(), bound, limit)]

    async def fetch_author_feed(
        self, author_id: int, bound: CursorKey | None, limit: int
    ) -> list[Post]:
        own = [p for p in self.rows.values() if p.author_id == author_id]
        return [replace(p) for p in order_page(own, bound, limit)]

    async def iter_feed_window(
        self,
        from_date: datetime | None,
        to_date: datetime | None,
        *,
        oldest_first: bool = False,
    ) -> AsyncIterator[Post]:
        window = [
            p
            for p in self.rows.values()
            if (from_date is None or p.created_at >= from_date)
            and (to_date is None or p.created_at <= to_date)
        ]
        ordered = order_page(window, None, len(window))
        if oldest_first:
            ordered.reverse()
        for post in ordered:
            self.rows_streamed += 1
            yield replace(post)


class InMemoryCommentRepository:
    """CommentRepository over a dict."""

    def __init__(self):
        self.rows: dict[int, Comment] = {}

    def add(self, comment: Comment) -> Comment:
        self.rows[comment.comment_id] = replace(comment)
        return comment

    async def get(self, comment_id: int) -> Comment | None:
        comment = self.rows.get(comment_id)
        return replace(comment) if comment else None

    async def list_for_post(self, post_id: int) -> list[Comment]:
        own = [c for c in self.rows.values() if c.post_id == post_id]
        return [replace(c) for c in sorted(own, key=lambda c: c.cursor_key)]

    async def count_for_post(self, post_id: int) -> int:
        return sum(1 for c in self.rows.values() if c.post_id == post_id)

    async def insert(self, comment: Comment) -> None:
        self.add(comment)

    async def update(self, comment: Comment) -> None:
        self.rows[comment.comment_id] = replace(comment)

    async def delete(self, comment: Comment) -> None:
        self.rows.pop(comment.comment_id, None)

    async def delete_for_post(self, post_id: int) -> int:
        doomed = [cid for cid, c in self.rows.items() if c.post_id == post_id]
        for cid in doomed:
            del self.rows[cid]
        return len(doomed)

    async def fetch_siblings(
        self,
        post_id: int,
        parent_id: int | None,
        bound: CursorKey | None,
        limit: int,
    ) -> list[Comment]:
        siblings = [
            c
            for c in self.rows.values()
            if c.post_id == post_id and c.parent_id == parent_id
        ]
        return [replace(c) for c in order_page(siblings, bound, limit)]


class FakeCacheStore:
    """CacheStore in memory; ``failing`` makes every call raise."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.failing = False

    def _check(self) -> None:
        if self.failing:
            raise CacheUnavailableError("connection refused")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    async def delete(self, *keys: str) -> None:
        self._check()
        for key in keys:
            self.data.pop(key, None)
            self.ttls.pop(key, None)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def post_repo() -> InMemoryPostRepository:
    return InMemoryPostRepository()


@pytest.fixture
def comment_repo() -> InMemoryCommentRepository:
    return InMemoryCommentRepository()


@pytest.fixture
def cache_store() -> FakeCacheStore:
    return FakeCacheStore()


@pytest.fixture
def cache(cache_store: FakeCacheStore) -> CacheCoordinator:
    return CacheCoordinator(cache_store, CacheTTLs())


@pytest.fixture
def ids() -> SnowflakeIdGenerator:
    return SnowflakeIdGenerator(worker_id=7)


@pytest.fixture
def feed_service(post_repo, comment_repo, cache, ids) -> FeedService:
    return FeedService(posts=post_repo, comments=comment_repo, cache=cache, ids=ids)


@pytest.fixture
def comment_service(comment_repo, post_repo, cache, ids) -> CommentService:
    return CommentService(
        comments=comment_repo, posts=post_repo, cache=cache, ids=ids
    )


@pytest.fixture
def make_post(post_repo) -> Callable[..., Post]:
    """Store a post created ``minutes`` after ``BASE_TIME``."""

    def factory(
        post_id: int,
        minutes: int = 0,
        author_id: int = 1,
        title: str | None = None,
        content: str = "body",
    ) -> Post:
        created_at = BASE_TIME + timedelta(minutes=minutes)
        return post_repo.add(
            Post(
                post_id=post_id,
                author_id=author_id,
                title=title or f"post {post_id}",
                content=content,
                created_at=created_at,
                updated_at=created_at,
            )
        )

    return factory


@pytest.fixture
def make_comment(comment_repo) -> Callable[..., Comment]:
    """Store a comment created ``minutes`` after ``BASE_TIME``."""

    def factory(
        comment_id: int,
        post_id: int,
        parent_id: int | None = None,
        minutes: int = 0,
        author_id: int = 1,
    ) -> Comment:
        created_at = BASE_TIME + timedelta(minutes=minutes)
        return comment_repo.add(
            Comment(
                comment_id=comment_id,
                post_id=post_id,
                parent_id=parent_id,
                author_id=author_id,
                content=f"comment {comment_id}",
                created_at=created_at,
                updated_at=created_at,
            )
        )

    return factory


@pytest.fixture
def app(feed_service, comment_service, cache) -> FastAPI:
    """App wired to the in-memory services; the lifespan is not run."""
    application = create_app()
    application.state.cache = cache
    application.state.feed_service = feed_service
    application.state.comment_service = comment_service
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
