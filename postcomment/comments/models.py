"""Database models for the threaded comment system.

Cassandra table definitions:
- comments_by_id: O(1) lookup by comment id
- comments_by_post: every comment of a post, oldest first (flat view, tree)
- comments_by_parent: siblings under one parent, newest first (keyset pages)

Architecture: adjacency list. ``parent_id`` references the parent comment
(None for top-level). In comments_by_parent the partition key cannot hold a
null, so top-level comments use ``parent_key = ROOT_PARENT_KEY``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from postcomment.core.ids import utc_now_ms
from postcomment.core.pagination import CursorKey
from postcomment.posts.models import as_utc


# Ids are positive, so 0 never collides with a real parent
ROOT_PARENT_KEY = 0


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_id (
    comment_id BIGINT PRIMARY KEY,
    post_id BIGINT,
    parent_id BIGINT,
    author_id BIGINT,
    content TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COMMENTS_BY_POST_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_post (
    post_id BIGINT,
    created_at TIMESTAMP,
    comment_id BIGINT,
    parent_id BIGINT,
    author_id BIGINT,
    content TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((post_id), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at ASC, comment_id ASC)
"""

COMMENTS_BY_PARENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_parent (
    post_id BIGINT,
    parent_key BIGINT,
    created_at TIMESTAMP,
    comment_id BIGINT,
    parent_id BIGINT,
    author_id BIGINT,
    content TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((post_id, parent_key), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, comment_id DESC)
"""

COMMENTS_TABLES_CQL = [
    COMMENTS_BY_ID_TABLE_CQL,
    COMMENTS_BY_POST_TABLE_CQL,
    COMMENTS_BY_PARENT_TABLE_CQL,
]


def parent_key_for(parent_id: int | None) -> int:
    """Partition value for comments_by_parent."""
    return ROOT_PARENT_KEY if parent_id is None else parent_id


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Comment:
    """Comment entity."""

    comment_id: int
    post_id: int
    parent_id: int | None
    author_id: int
    content: str
    created_at: datetime
    updated_at: datetime

    @property
    def cursor_key(self) -> CursorKey:
        return CursorKey(self.created_at, self.comment_id)

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from a Cassandra row of any comments table."""
        created_at = as_utc(row.created_at)
        return cls(
            comment_id=row.comment_id,
            post_id=row.post_id,
            parent_id=row.parent_id,
            author_id=row.author_id,
            content=row.content or "",
            created_at=created_at,
            updated_at=as_utc(row.updated_at) if row.updated_at else created_at,
        )


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_comment(
    comment_id: int,
    post_id: int,
    author_id: int,
    content: str,
    parent_id: int | None = None,
) -> Comment:
    """Create a new comment stamped with the current time."""
    now = utc_now_ms()
    return Comment(
        comment_id=comment_id,
        post_id=post_id,
        parent_id=parent_id,
        author_id=author_id,
        content=content,
        created_at=now,
        updated_at=now,
    )
