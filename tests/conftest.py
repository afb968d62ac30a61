"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_PATH"] = tempfile.mkdtemp(prefix="peaceblog-test-")
os.environ["EMAIL_BACKEND"] = "console"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from peaceblog.api.deps import get_auth_service
from peaceblog.database import get_session
from peaceblog.main import app
from peaceblog.models import Post, PostStatus, User
from peaceblog.services.auth import AuthService
from peaceblog.services.directory import DatabasePrincipalDirectory, Principal
from peaceblog.services.email import EmailService, NotificationDispatcher
from peaceblog.services.passcodes import hash_passcode
from peaceblog.services.rate_limit import get_rate_limiter
from peaceblog.services.tokens import TokenIssuer
from peaceblog.services.verification import VerificationStore

TEST_SECRET = "test-secret-that-is-at-least-32-characters"
ADMIN_PASSCODE = "1234"


class FakeClock:
    """Controllable clock for TTL and expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingEmailService(EmailService):
    """Email service that remembers sent codes instead of sending them."""

    def __init__(self, succeed: bool = True) -> None:
        super().__init__(backend=AsyncMock())
        self.succeed = succeed
        self.sent: list[tuple[str, str]] = []

    async def send_verification_code(self, to: str, code: str) -> bool:
        self.sent.append((to, code))
        return self.succeed

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Each test starts with empty rate limit windows."""
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(secret=TEST_SECRET, lifetime=timedelta(hours=3), clock=clock)


@pytest.fixture
def store(clock: FakeClock) -> VerificationStore:
    return VerificationStore(ttl=timedelta(minutes=5), max_attempts=5, clock=clock)


@pytest.fixture
def email() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture(scope="session")
def admin_passcode_hash() -> str:
    # Low cost factor keeps the suite fast
    return hash_passcode(ADMIN_PASSCODE, rounds=4)


@pytest.fixture
def alice(admin_passcode_hash: str) -> Principal:
    return Principal(
        id="alice-id",
        username="alice",
        passcode_hash=admin_passcode_hash,
        email="alice@example.com",
        role="ADMIN",
    )


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine, fresh for every test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def admin_user(session: AsyncSession, admin_passcode_hash: str) -> User:
    """Create the admin account alice (passcode 1234)."""
    user = User(
        username="alice",
        passcode_hash=admin_passcode_hash,
        email="alice@example.com",
        role="ADMIN",
    )
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
def auth_service(
    session_factory,
    store: VerificationStore,
    issuer: TokenIssuer,
    email: RecordingEmailService,
) -> AuthService:
    """AuthService wired to the test database and a recording email service."""

    @asynccontextmanager
    async def session_context():
        async with session_factory() as session:
            yield session

    return AuthService(
        directory=DatabasePrincipalDirectory(session_context),
        store=store,
        issuer=issuer,
        dispatcher=NotificationDispatcher(email),
    )


@pytest.fixture
async def client(session_factory, auth_service: AuthService) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_auth_service] = lambda: auth_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_token(admin_user: User, issuer: TokenIssuer) -> str:
    """Create a session token for the admin user."""
    return issuer.issue(Principal.from_user(admin_user))


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    """Create authorization headers for the admin user."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
async def make_post(session: AsyncSession) -> Callable[..., Any]:
    """Factory for posts with controllable creation times."""

    async def _make(
        title: str = "Hello",
        username: str = "alice",
        status: PostStatus = PostStatus.DRAFT,
        category: str | None = None,
        created_at: datetime | None = None,
    ) -> Post:
        post = Post(
            title=title,
            content=f"<p>{title}</p>",
            username=username,
            status=status,
            category=category,
            tags=["intro"],
        )
        if created_at is not None:
            post.created_at = created_at
            post.updated_at = created_at
        session.add(post)
        await session.commit()
        return post

    return _make


# Helper to make authenticated requests
class AuthenticatedClient:
    """Wrapper for AsyncClient with authentication."""

    def __init__(self, client: AsyncClient, headers: dict[str, str]):
        self.client = client
        self.headers = headers

    async def get(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.post(url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.put(url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.delete(url, **kwargs)


@pytest.fixture
def admin_client(client: AsyncClient, admin_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated admin test client."""
    return AuthenticatedClient(client, admin_headers)
