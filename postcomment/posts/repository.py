"""Cassandra persistence for posts.

Every post is written to the posts tables (by id, global feed, author feed)
in one logged batch so the denormalized copies change together. The global
feed is partitioned by creation month; ``posts_feed_buckets`` lists those
months so feed reads can walk them newest first.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cassandra.query import BatchStatement

from postcomment.core.pagination import CursorKey

from .models import FEED_BUCKETS_SHARD, Post, feed_bucket


if TYPE_CHECKING:
    from cassandra.cluster import Session


# Widest created_at window used when a filter leaves a bound open
OPEN_RANGE_START = datetime(1970, 1, 1, tzinfo=UTC)
OPEN_RANGE_END = datetime(9999, 12, 31, tzinfo=UTC)

# Rows per driver page when walking a date window
SCAN_FETCH_SIZE = 500


class PostRepository:
    """Post reads and writes over an async Cassandra session."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        ks = self.keyspace

        self._get_post = self.session.prepare(f"""
            SELECT * FROM {ks}.posts_by_id WHERE post_id = ?
        """)
        self._list_buckets = self.session.prepare(f"""
            SELECT bucket FROM {ks}.posts_feed_buckets WHERE shard = ?
        """)

        self._insert_post = self.session.prepare(f"""
            INSERT INTO {ks}.posts_by_id
            (post_id, author_id, title, content, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)
        self._insert_feed = self.session.prepare(f"""
            INSERT INTO {ks}.posts_feed
            (bucket, created_at, post_id, author_id, title, content, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_bucket = self.session.prepare(f"""
            INSERT INTO {ks}.posts_feed_buckets (shard, bucket) VALUES (?, ?)
        """)
        self._insert_by_author = self.session.prepare(f"""
            INSERT INTO {ks}.posts_by_author
            (author_id, created_at, post_id, title, content, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._update_post = self.session.prepare(f"""
            UPDATE {ks}.posts_by_id
            SET title = ?, content = ?, updated_at = ?
            WHERE post_id = ?
        """)
        self._update_feed = self.session.prepare(f"""
            UPDATE {ks}.posts_feed
            SET title = ?, content = ?, updated_at = ?
            WHERE bucket = ? AND created_at = ? AND post_id = ?
        """)
        self._update_by_author = self.session.prepare(f"""
            UPDATE {ks}.posts_by_author
            SET title = ?, content = ?, updated_at = ?
            WHERE author_id = ? AND created_at = ? AND post_id = ?
        """)

        self._delete_post = self.session.prepare(f"""
            DELETE FROM {ks}.posts_by_id WHERE post_id = ?
        """)
        self._delete_feed = self.session.prepare(f"""
            DELETE FROM {ks}.posts_feed
            WHERE bucket = ? AND created_at = ? AND post_id = ?
        """)
        self._delete_by_author = self.session.prepare(f"""
            DELETE FROM {ks}.posts_by_author
            WHERE author_id = ? AND created_at = ? AND post_id = ?
        """)

        # Keyset pages: clustering order is (created_at DESC, post_id DESC)
        self._latest_feed = self.session.prepare(f"""
            SELECT * FROM {ks}.posts_feed
            WHERE bucket = ?
            LIMIT ?
        """)
        self._older_feed = self.session.prepare(f"""
            SELECT * FROM {ks}.posts_feed
            WHERE bucket = ? AND (created_at, post_id) < (?, ?)
            LIMIT ?
        """)
        self._latest_by_author = self.session.prepare(f"""
            SELECT * FROM {ks}.posts_by_author
            WHERE author_id = ?
            LIMIT ?
        """)
        self._older_by_author = self.session.prepare(f"""
            SELECT * FROM {ks}.posts_by_author
            WHERE author_id = ? AND (created_at, post_id) < (?, ?)
            LIMIT ?
        """)

        # Date windows are read whole, one driver page at a time
        self._feed_range_desc = self.session.prepare(f"""
            SELECT * FROM {ks}.posts_feed
            WHERE bucket = ? AND created_at >= ? AND created_at <= ?
        """)
        self._feed_range_asc = self.session.prepare(f"""
            SELECT * FROM {ks}.posts_feed
            WHERE bucket = ? AND created_at >= ? AND created_at <= ?
            ORDER BY created_at ASC, post_id ASC
        """)

    async def get(self, post_id: int) -> Post | None:
        """Point lookup by id."""
        result = await self.session.aexecute(self._get_post, [post_id])
        row = result.one()
        return Post.from_row(row) if row else None

    async def feed_buckets(self) -> list[str]:
        """Months holding feed rows, newest first."""
        rows = await self.session.aexecute(self._list_buckets, [FEED_BUCKETS_SHARD])
        return [row.bucket for row in rows]

    async def insert(self, post: Post) -> None:
        """Write a new post to every posts table and register its month."""
        bucket = feed_bucket(post.created_at)
        batch = BatchStatement()
        batch.add(
            self._insert_post,
            [
                post.post_id,
                post.author_id,
                post.title,
                post.content,
                post.created_at,
                post.updated_at,
            ],
        )
        batch.add(
            self._insert_feed,
            [
                bucket,
                post.created_at,
                post.post_id,
                post.author_id,
                post.title,
                post.content,
                post.updated_at,
            ],
        )
        batch.add(self._insert_bucket, [FEED_BUCKETS_SHARD, bucket])
        batch.add(
            self._insert_by_author,
            [
                post.author_id,
                post.created_at,
                post.post_id,
                post.title,
                post.content,
                post.updated_at,
            ],
        )
        await self.session.aexecute(batch)

    async def update(self, post: Post) -> None:
        """Persist title/content/updated_at of an existing post."""
        fields = [post.title, post.content, post.updated_at]
        bucket = feed_bucket(post.created_at)
        batch = BatchStatement()
        batch.add(self._update_post, [*fields, post.post_id])
        batch.add(self._update_feed, [*fields, bucket, post.created_at, post.post_id])
        batch.add(
            self._update_by_author,
            [*fields, post.author_id, post.created_at, post.post_id],
        )
        await self.session.aexecute(batch)

    async def delete(self, post: Post) -> None:
        """Remove a post from every posts table. Its month stays listed."""
        bucket = feed_bucket(post.created_at)
        batch = BatchStatement()
        batch.add(self._delete_post, [post.post_id])
        batch.add(self._delete_feed, [bucket, post.created_at, post.post_id])
        batch.add(
            self._delete_by_author, [post.author_id, post.created_at, post.post_id]
        )
        await self.session.aexecute(batch)

    async def fetch_feed(self, bound: CursorKey | None, limit: int) -> list[Post]:
        """Newest posts overall, strictly older than ``bound`` when given.

        Walks month partitions newest first until ``limit`` rows are found.
        """
        start = feed_bucket(bound.created_at) if bound is not None else None
        posts: list[Post] = []
        for bucket in await self.feed_buckets():
            if start is not None and bucket > start:
                continue
            remaining = limit - len(posts)
            if bucket == start:
                rows = await self.session.aexecute(
                    self._older_feed,
                    [bucket, bound.created_at, bound.id, remaining],
                )
            else:
                rows = await self.session.aexecute(
                    self._latest_feed, [bucket, remaining]
                )
            posts.extend(Post.from_row(row) for row in rows)
            if len(posts) >= limit:
                break
        return posts

    async def fetch_author_feed(
        self, author_id: int, bound: CursorKey | None, limit: int
    ) -> list[Post]:
        """Newest posts of one author, strictly older than ``bound`` when given."""
        if bound is None:
            rows = await self.session.aexecute(
                self._latest_by_author, [author_id, limit]
            )
        else:
            rows = await self.session.aexecute(
                self._older_by_author,
                [author_id, bound.created_at, bound.id, limit],
            )
        return [Post.from_row(row) for row in rows]

    async def iter_feed_window(
        self,
        from_date: datetime | None,
        to_date: datetime | None,
        *,
        oldest_first: bool = False,
        fetch_size: int = SCAN_FETCH_SIZE,
    ) -> AsyncIterator[Post]:
        """Every post created within an inclusive window, in feed order.

        Rows arrive ``fetch_size`` at a time through driver paging, so callers
        can stop early without reading the rest of the window.
        """
        low = feed_bucket(from_date) if from_date is not None else None
        high = feed_bucket(to_date) if to_date is not None else None
        buckets = [
            bucket
            for bucket in await self.feed_buckets()
            if (low is None or bucket >= low) and (high is None or bucket <= high)
        ]
        if oldest_first:
            buckets.reverse()
        query = self._feed_range_asc if oldest_first else self._feed_range_desc

        for bucket in buckets:
            statement = query.bind(
                [bucket, from_date or OPEN_RANGE_START, to_date or OPEN_RANGE_END]
            )
            statement.fetch_size = fetch_size
            result = await self.session.aexecute(statement)
            async for row in result:
                yield Post.from_row(row)


# ==============================================================================
# Pagination scopes
# ==============================================================================


@dataclass
class GlobalFeedScope:
    """All posts."""

    posts: PostRepository
    entity: str = "Post"

    async def resolve(self, item_id: int) -> Post | None:
        return await self.posts.get(item_id)

    async def fetch_older(self, bound: CursorKey | None, limit: int) -> list[Post]:
        return await self.posts.fetch_feed(bound, limit)


@dataclass
class AuthorFeedScope:
    """Posts of one author; a reference post by someone else does not resolve."""

    posts: PostRepository
    author_id: int
    entity: str = "Post"

    async def resolve(self, item_id: int) -> Post | None:
        post = await self.posts.get(item_id)
        if post is None or post.author_id != self.author_id:
            return None
        return post

    async def fetch_older(self, bound: CursorKey | None, limit: int) -> list[Post]:
        return await self.posts.fetch_author_feed(self.author_id, bound, limit)
