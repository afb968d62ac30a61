"""Columns shared by every peaceblog table."""

from datetime import UTC, datetime

from nanoid import generate
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

ID_LENGTH = 21


def new_id() -> str:
    """Random URL-safe primary key."""
    return generate(size=ID_LENGTH)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Record(SQLModel):
    """A nanoid primary key plus UTC creation and modification times."""

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        sa_column_kwargs={"onupdate": utcnow},
    )
