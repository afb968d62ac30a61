"""SQLModel database models."""

from peaceblog.models.base import Record
from peaceblog.models.post import Post, PostStatus
from peaceblog.models.user import User

__all__ = [
    "Post",
    "PostStatus",
    "Record",
    "User",
]
