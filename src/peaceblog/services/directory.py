"""Principal lookup for the admin sign-in flow."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from peaceblog.models import User


@dataclass(frozen=True)
class Principal:
    """Read-only view of an administrator account."""

    id: str
    username: str
    passcode_hash: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            username=user.username,
            passcode_hash=user.passcode_hash,
            email=user.email,
            role=user.role,
        )


class PrincipalDirectory(Protocol):
    """Anything that can resolve a username to a principal."""

    async def find_by_username(self, username: str) -> Principal | None: ...


class DatabasePrincipalDirectory:
    """Principal directory backed by the users table.

    Opens a short-lived session per lookup so a single instance can be shared
    by every request for the lifetime of the application.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        self._session_factory = session_factory

    async def find_by_username(self, username: str) -> Principal | None:
        async with self._session_factory() as session:
            stmt = select(User).where(User.username == username)
            result = await session.execute(stmt)
            user = result.scalar_one_or_none()
        return Principal.from_user(user) if user else None


class InMemoryPrincipalDirectory:
    """Dictionary-backed directory for tests and local tooling."""

    def __init__(self, principals: list[Principal] | None = None) -> None:
        self._principals = {p.username: p for p in principals or []}

    def add(self, principal: Principal) -> None:
        self._principals[principal.username] = principal

    def remove(self, username: str) -> None:
        self._principals.pop(username, None)

    async def find_by_username(self, username: str) -> Principal | None:
        return self._principals.get(username)
