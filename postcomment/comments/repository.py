"""Cassandra persistence for comments.

Every comment is written to comments_by_id, comments_by_post and
comments_by_parent in one logged batch.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cassandra.query import BatchStatement

from postcomment.core.pagination import CursorKey

from .models import Comment, parent_key_for


if TYPE_CHECKING:
    from cassandra.cluster import Session


# Comments removed per batch when a post is deleted
DELETE_BATCH_SIZE = 50


class CommentRepository:
    """Comment reads and writes over an async Cassandra session."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        ks = self.keyspace

        self._get_comment = self.session.prepare(f"""
            SELECT * FROM {ks}.comments_by_id WHERE comment_id = ?
        """)

        self._get_comments_by_post = self.session.prepare(f"""
            SELECT * FROM {ks}.comments_by_post WHERE post_id = ?
        """)

        self._count_comments_by_post = self.session.prepare(f"""
            SELECT COUNT(*) FROM {ks}.comments_by_post WHERE post_id = ?
        """)

        self._insert_comment = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_id
            (comment_id, post_id, parent_id, author_id, content, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_by_post = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_post
            (post_id, created_at, comment_id, parent_id, author_id, content, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_by_parent = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_parent
            (post_id, parent_key, created_at, comment_id, parent_id, author_id,
             content, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._update_comment = self.session.prepare(f"""
            UPDATE {ks}.comments_by_id
            SET content = ?, updated_at = ?
            WHERE comment_id = ?
        """)
        self._update_by_post = self.session.prepare(f"""
            UPDATE {ks}.comments_by_post
            SET content = ?, updated_at = ?
            WHERE post_id = ? AND created_at = ? AND comment_id = ?
        """)
        self._update_by_parent = self.session.prepare(f"""
            UPDATE {ks}.comments_by_parent
            SET content = ?, updated_at = ?
            WHERE post_id = ? AND parent_key = ? AND created_at = ? AND comment_id = ?
        """)

        self._delete_comment = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_id WHERE comment_id = ?
        """)
        self._delete_by_post = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_post
            WHERE post_id = ? AND created_at = ? AND comment_id = ?
        """)
        self._delete_post_partition = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_post WHERE post_id = ?
        """)
        self._delete_by_parent = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_parent
            WHERE post_id = ? AND parent_key = ? AND created_at = ? AND comment_id = ?
        """)

        # Keyset pages: clustering order is (created_at DESC, comment_id DESC)
        self._latest_siblings = self.session.prepare(f"""
            SELECT * FROM {ks}.comments_by_parent
            WHERE post_id = ? AND parent_key = ?
            LIMIT ?
        """)
        self._older_siblings = self.session.prepare(f"""
            SELECT * FROM {ks}.comments_by_parent
            WHERE post_id = ? AND parent_key = ? AND (created_at, comment_id) < (?, ?)
            LIMIT ?
        """)

    async def get(self, comment_id: int) -> Comment | None:
        """Point lookup by id."""
        result = await self.session.aexecute(self._get_comment, [comment_id])
        row = result.one()
        return Comment.from_row(row) if row else None

    async def list_for_post(self, post_id: int) -> list[Comment]:
        """All comments of a post, oldest first."""
        rows = await self.session.aexecute(self._get_comments_by_post, [post_id])
        return [Comment.from_row(row) for row in rows]

    async def count_for_post(self, post_id: int) -> int:
        """Number of comments on a post."""
        result = await self.session.aexecute(self._count_comments_by_post, [post_id])
        row = result.one()
        return row.count if row else 0

    async def insert(self, comment: Comment) -> None:
        """Write a new comment to every comments table."""
        batch = BatchStatement()
        batch.add(
            self._insert_comment,
            [
                comment.comment_id,
                comment.post_id,
                comment.parent_id,
                comment.author_id,
                comment.content,
                comment.created_at,
                comment.updated_at,
            ],
        )
        batch.add(
            self._insert_by_post,
            [
                comment.post_id,
                comment.created_at,
                comment.comment_id,
                comment.parent_id,
                comment.author_id,
                comment.content,
                comment.updated_at,
            ],
        )
        batch.add(
            self._insert_by_parent,
            [
                comment.post_id,
                parent_key_for(comment.parent_id),
                comment.created_at,
                comment.comment_id,
                comment.parent_id,
                comment.author_id,
                comment.content,
                comment.updated_at,
            ],
        )
        await self.session.aexecute(batch)

    async def update(self, comment: Comment) -> None:
        """Persist content/updated_at of an existing comment."""
        fields = [comment.content, comment.updated_at]
        batch = BatchStatement()
        batch.add(self._update_comment, [*fields, comment.comment_id])
        batch.add(
            self._update_by_post,
            [*fields, comment.post_id, comment.created_at, comment.comment_id],
        )
        batch.add(
            self._update_by_parent,
            [
                *fields,
                comment.post_id,
                parent_key_for(comment.parent_id),
                comment.created_at,
                comment.comment_id,
            ],
        )
        await self.session.aexecute(batch)

    async def delete(self, comment: Comment) -> None:
        """Remove one comment. Its replies stay and render as top-level."""
        batch = BatchStatement()
        self._add_delete(batch, comment)
        await self.session.aexecute(batch)

    async def delete_for_post(self, post_id: int) -> int:
        """Remove every comment of a post. Returns how many were removed."""
        comments = await self.list_for_post(post_id)
        for chunk in _chunks(comments, DELETE_BATCH_SIZE):
            batch = BatchStatement()
            for comment in chunk:
                self._add_delete(batch, comment)
            await self.session.aexecute(batch)
        await self.session.aexecute(self._delete_post_partition, [post_id])
        return len(comments)

    def _add_delete(self, batch: BatchStatement, comment: Comment) -> None:
        batch.add(self._delete_comment, [comment.comment_id])
        batch.add(
            self._delete_by_post,
            [comment.post_id, comment.created_at, comment.comment_id],
        )
        batch.add(
            self._delete_by_parent,
            [
                comment.post_id,
                parent_key_for(comment.parent_id),
                comment.created_at,
                comment.comment_id,
            ],
        )

    async def fetch_siblings(
        self,
        post_id: int,
        parent_id: int | None,
        bound: CursorKey | None,
        limit: int,
    ) -> list[Comment]:
        """Newest comments under one parent, strictly older than ``bound``."""
        parent_key = parent_key_for(parent_id)
        if bound is None:
            rows = await self.session.aexecute(
                self._latest_siblings, [post_id, parent_key, limit]
            )
        else:
            rows = await self.session.aexecute(
                self._older_siblings,
                [post_id, parent_key, bound.created_at, bound.id, limit],
            )
        return [Comment.from_row(row) for row in rows]


def _chunks(items: list[Comment], size: int) -> Iterator[list[Comment]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


# ==============================================================================
# Pagination scope
# ==============================================================================


@dataclass
class SiblingScope:
    """Comments of one post sharing one parent (None = top-level)."""

    comments: CommentRepository
    post_id: int
    parent_id: int | None
    known: dict[int, Comment] = field(default_factory=dict)
    entity: str = "Comment"

    @classmethod
    def around(
        cls, comments: CommentRepository, reference: Comment
    ) -> "SiblingScope":
        """Scope of ``reference``'s siblings, with the reference preloaded."""
        return cls(
            comments=comments,
            post_id=reference.post_id,
            parent_id=reference.parent_id,
            known={reference.comment_id: reference},
        )

    async def resolve(self, item_id: int) -> Comment | None:
        comment = self.known.get(item_id) or await self.comments.get(item_id)
        if (
            comment is None
            or comment.post_id != self.post_id
            or comment.parent_id != self.parent_id
        ):
            return None
        return comment

    async def fetch_older(self, bound: CursorKey | None, limit: int) -> list[Comment]:
        return await self.comments.fetch_siblings(
            self.post_id, self.parent_id, bound, limit
        )
