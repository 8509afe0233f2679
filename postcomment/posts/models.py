"""Database models for posts.

Cassandra table definitions:
- posts_by_id: O(1) lookup by post id
- posts_feed: global feed, newest first, one partition per calendar month
- posts_feed_buckets: the months that hold posts, newest first
- posts_by_author: per-author feed, newest first

Feed tables cluster by (created_at DESC, post_id DESC), the same composite
key the cursor paginator orders by, so keyset queries are clustering slices.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from postcomment.core.ids import utc_now_ms
from postcomment.core.pagination import CursorKey


# Partition key of posts_feed_buckets; every month is listed under it
FEED_BUCKETS_SHARD = "feed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

POSTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.posts_by_id (
    post_id BIGINT PRIMARY KEY,
    author_id BIGINT,
    title TEXT,
    content TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

POSTS_FEED_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.posts_feed (
    bucket TEXT,
    created_at TIMESTAMP,
    post_id BIGINT,
    author_id BIGINT,
    title TEXT,
    content TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((bucket), created_at, post_id)
) WITH CLUSTERING ORDER BY (created_at DESC, post_id DESC)
"""

POSTS_FEED_BUCKETS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.posts_feed_buckets (
    shard TEXT,
    bucket TEXT,
    PRIMARY KEY ((shard), bucket)
) WITH CLUSTERING ORDER BY (bucket DESC)
"""

POSTS_BY_AUTHOR_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.posts_by_author (
    author_id BIGINT,
    created_at TIMESTAMP,
    post_id BIGINT,
    title TEXT,
    content TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((author_id), created_at, post_id)
) WITH CLUSTERING ORDER BY (created_at DESC, post_id DESC)
"""

POSTS_TABLES_CQL = [
    POSTS_BY_ID_TABLE_CQL,
    POSTS_FEED_TABLE_CQL,
    POSTS_FEED_BUCKETS_TABLE_CQL,
    POSTS_BY_AUTHOR_TABLE_CQL,
]


def as_utc(value: datetime) -> datetime:
    """Cassandra returns naive UTC datetimes; make them timezone-aware."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def feed_bucket(created_at: datetime) -> str:
    """posts_feed partition of a post: its UTC creation month, ``YYYY-MM``."""
    return as_utc(created_at).astimezone(UTC).strftime("%Y-%m")


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Post:
    """Post entity."""

    post_id: int
    author_id: int
    title: str
    content: str
    created_at: datetime
    updated_at: datetime

    @property
    def cursor_key(self) -> CursorKey:
        return CursorKey(self.created_at, self.post_id)

    @classmethod
    def from_row(cls, row: Any) -> "Post":
        """Create Post from a Cassandra row of any posts table."""
        created_at = as_utc(row.created_at)
        return cls(
            post_id=row.post_id,
            author_id=row.author_id,
            title=row.title or "",
            content=row.content or "",
            created_at=created_at,
            updated_at=as_utc(row.updated_at) if row.updated_at else created_at,
        )


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_post(post_id: int, author_id: int, title: str, content: str) -> Post:
    """Create a new post stamped with the current time."""
    now = utc_now_ms()
    return Post(
        post_id=post_id,
        author_id=author_id,
        title=title,
        content=content,
        created_at=now,
        updated_at=now,
    )
