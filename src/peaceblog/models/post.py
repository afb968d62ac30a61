"""Blog post model."""

from datetime import datetime
from enum import Enum

from pydantic import field_validator
from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from peaceblog.models.base import Record


class PostStatus(str, Enum):
    """Publication state of a post."""

    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class Post(Record, table=True):
    """Blog post model."""

    __tablename__ = "posts"

    title: str = Field(max_length=255)
    content: str
    summary: str | None = Field(default=None)
    username: str = Field(index=True, max_length=50, description="Author username")
    status: PostStatus = Field(default=PostStatus.DRAFT, index=True)
    category: str | None = Field(default=None, index=True, max_length=100)
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    view_count: int = Field(default=0)
    comment_enabled: bool = Field(default=True)
    published_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )


class PostCreate(SQLModel):
    """Schema for creating a post."""

    title: str = Field(min_length=1, max_length=200)
    content: str
    summary: str | None = None
    username: str = Field(min_length=1, max_length=50)
    status: PostStatus | None = None
    category: str | None = None
    tags: list[str] | None = None
    comment_enabled: bool | None = None

    @field_validator("title", "content", "username")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class PostUpdate(SQLModel):
    """Schema for updating a post.

    The editor always sends the whole form, so summary, category and tags
    are replaced as given. Omitting comment_enabled leaves it unchanged.
    """

    title: str = Field(min_length=1, max_length=255)
    content: str
    summary: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    comment_enabled: bool | None = None

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class PostRead(SQLModel):
    """Schema for reading a post."""

    id: str
    title: str
    content: str
    summary: str | None
    username: str
    status: PostStatus
    category: str | None
    tags: list[str]
    view_count: int
    comment_enabled: bool
    created_at: datetime
    updated_at: datetime
    published_at: datetime | None
