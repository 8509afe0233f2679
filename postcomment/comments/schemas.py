"""Pydantic schemas for the comment system."""

from datetime import datetime

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from .models import Comment


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Request to create a comment on a post."""

    parent_id: int | None = Field(None, ge=1)
    content: str = Field(..., min_length=1, max_length=10000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Strip whitespace and validate content."""
        v = v.strip()
        if not v:
            msg = "Content cannot be empty"
            raise ValueError(msg)
        return v


class UpdateCommentRequest(BaseModel):
    """Request to update a comment."""

    content: str = Field(..., min_length=1, max_length=10000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Strip whitespace and validate content."""
        v = v.strip()
        if not v:
            msg = "Content cannot be empty"
            raise ValueError(msg)
        return v


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentResponse(BaseModel):
    """Flat comment."""

    id: int
    post_id: int
    parent_id: int | None
    author_id: int
    content: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.comment_id,
            post_id=comment.post_id,
            parent_id=comment.parent_id,
            author_id=comment.author_id,
            content=comment.content,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )


class CommentTreeNode(BaseModel):
    """Comment with its nested replies."""

    id: int
    parent_id: int | None
    author_id: int
    content: str
    created_at: datetime
    replies: list["CommentTreeNode"] = Field(default_factory=list)

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentTreeNode":
        return cls(
            id=comment.comment_id,
            parent_id=comment.parent_id,
            author_id=comment.author_id,
            content=comment.content,
            created_at=comment.created_at,
        )


class CommentCountResponse(BaseModel):
    """Number of comments on a post."""

    post_id: int
    count: int


COMMENT_LIST_ADAPTER = TypeAdapter(list[CommentResponse])
COMMENT_TREE_ADAPTER = TypeAdapter(list[CommentTreeNode])
COUNT_ADAPTER = TypeAdapter(int)
