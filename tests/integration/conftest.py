"""Pytest fixtures for integration tests.

Every test gets its own SQLite database file (through aiosqlite) with the
schema created from the ORM models. A file rather than ``:memory:`` is used
so concurrent sessions see the same data, which the race tests rely on.

On top of the database the fixtures provide a fully wired
``ServiceContext``, three accounts (an administrator and two regular users),
a repository owned by the first regular user, and an HTTP client for the
FastAPI app bound to the same context.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Iterable, Sequence
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from reviewcore.access import Principal
from reviewcore.auth import issue_token
from reviewcore.config import AuthConfig, EvaluationConfig, ReviewcoreConfig
from reviewcore.context import ServiceContext, build_context
from reviewcore.database.connection import create_schema, get_session_factory
from reviewcore.database.models.repository import Repository
from reviewcore.database.models.review import Review
from reviewcore.database.models.rule import Rule
from reviewcore.database.models.user import User, UserRole
from reviewcore.repositories import RepositoryDraft
from reviewcore.rules.engine import FileChange, MatcherRegistry, PatternMatch

TEST_JWT_SECRET = "integration-test-secret"


class ContainsMatcher:
    """Flags every line containing ``rule.pattern["needle"]``."""

    def match(self, rule: Rule, changes: Sequence[FileChange]) -> Iterable[PatternMatch]:
        needle = (rule.pattern or {}).get("needle", "")
        for change in changes:
            for number, line in enumerate((change.content or "").splitlines(), start=1):
                if needle and needle in line:
                    yield PatternMatch(
                        file_path=change.path,
                        line_number=number,
                        column_start=line.index(needle) + 1,
                        snippet=line.strip(),
                    )


class StaticChangeSets:
    """Change set provider returning the same files for every review.

    Setting ``error`` makes ``fetch`` raise it instead.
    """

    def __init__(self) -> None:
        self.changes: list[FileChange] = []
        self.error: Exception | None = None
        self.fetched: list[Review] = []

    async def fetch(self, review: Review) -> list[FileChange]:
        self.fetched.append(review)
        if self.error is not None:
            raise self.error
        return list(self.changes)


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite async engine with all tables.

    Yields:
        Configured AsyncEngine instance.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'reviewcore.db'}",
        echo=False,
    )
    await create_schema(test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return get_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session for tests that call query functions directly."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def registry() -> MatcherRegistry:
    """Matcher registry with the ``contains`` test matcher."""
    return MatcherRegistry({"contains": ContainsMatcher()})


@pytest.fixture
def change_sets() -> StaticChangeSets:
    return StaticChangeSets()


@pytest_asyncio.fixture
async def context(
    session_factory: async_sessionmaker[AsyncSession],
    registry: MatcherRegistry,
    change_sets: StaticChangeSets,
) -> AsyncGenerator[ServiceContext, None]:
    """Service context wired to the test database.

    The scheduler is not started; tests that need background evaluation
    start it themselves.
    """
    ctx = build_context(
        session_factory,
        evaluation=EvaluationConfig(max_concurrent_jobs=2),
        registry=registry,
        change_sets=change_sets,
    )
    yield ctx
    await ctx.scheduler.stop()


@pytest_asyncio.fixture
async def admin(context: ServiceContext) -> User:
    return await context.users.create("Grace Admin", "grace@example.com", role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def alice(context: ServiceContext) -> User:
    return await context.users.create("Alice", "alice@example.com")


@pytest_asyncio.fixture
async def bob(context: ServiceContext) -> User:
    return await context.users.create("Bob", "bob@example.com")


@pytest.fixture
def admin_principal(admin: User) -> Principal:
    return Principal.from_user(admin)


@pytest.fixture
def alice_principal(alice: User) -> Principal:
    return Principal.from_user(alice)


@pytest.fixture
def bob_principal(bob: User) -> Principal:
    return Principal.from_user(bob)


@pytest_asyncio.fixture
async def repository(context: ServiceContext, alice_principal: Principal) -> Repository:
    """An active repository owned by alice."""
    return await context.repositories.create(
        RepositoryDraft(name="payments", url="https://github.com/acme/payments"),
        alice_principal,
    )


@pytest.fixture
def config() -> ReviewcoreConfig:
    """Application configuration with a known token secret."""
    return ReviewcoreConfig(auth=AuthConfig(jwt_secret=TEST_JWT_SECRET))


@pytest.fixture
def auth_headers(config: ReviewcoreConfig) -> Callable[[User], dict[str, str]]:
    """Build an ``Authorization`` header for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(user, config.auth)}"}

    return _headers


@pytest_asyncio.fixture
async def client(
    config: ReviewcoreConfig,
    context: ServiceContext,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the API, bound to the test context.

    ASGITransport does not run the lifespan, so the evaluation workers stay
    stopped and new reviews remain PENDING unless a test starts them.
    """
    from reviewcore.web.app import create_app

    app = create_app(config, context=context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
