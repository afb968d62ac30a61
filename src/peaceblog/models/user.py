"""User model."""

from sqlmodel import Field

from peaceblog.models.base import Record

DEFAULT_ROLE = "ADMIN"


class User(Record, table=True):
    """Administrator account subject to two-factor sign-in."""

    __tablename__ = "users"

    username: str = Field(unique=True, index=True, max_length=50)
    passcode_hash: str = Field(max_length=255, description="bcrypt hash of the passcode")
    email: str = Field(max_length=255, description="Address that receives verification codes")
    role: str = Field(default=DEFAULT_ROLE, max_length=50)

