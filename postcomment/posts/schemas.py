"""Pydantic schemas for posts and feeds."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from .models import Post


# ==============================================================================
# Request Schemas
# ==============================================================================


class PostContentRequest(BaseModel):
    """Title and body of a post; used for create and update."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=10000)

    @field_validator("title", "content")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Strip whitespace and reject blank values."""
        v = v.strip()
        if not v:
            msg = "Value cannot be blank"
            raise ValueError(msg)
        return v


PostSort = Literal["createdAt", "-createdAt", "title", "-title"]


class PostQuery(BaseModel):
    """Filter for post search. Offset based; not for infinite scroll."""

    keyword: str | None = Field(None, max_length=200)
    from_date: datetime | None = None
    to_date: datetime | None = None
    sort: PostSort = "-createdAt"
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


# ==============================================================================
# Response Schemas
# ==============================================================================


class PostResponse(BaseModel):
    """Post as returned to clients and stored in the cache."""

    id: int
    author_id: int
    title: str
    content: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(
            id=post.post_id,
            author_id=post.author_id,
            title=post.title,
            content=post.content,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


POST_ADAPTER = TypeAdapter(PostResponse)
POST_LIST_ADAPTER = TypeAdapter(list[PostResponse])
