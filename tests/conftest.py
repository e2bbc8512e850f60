"""
Test infrastructure for the article store.

Strategy
--------
- SQLite via aiosqlite, one database file per test under ``tmp_path``.  A
  file (not ``:memory:`` with StaticPool) is required because the
  concurrency tests run several transactions at once, and each needs its
  own connection.
- ``configure_sqlite`` turns on foreign keys (delete cascades) and makes
  every transaction ``BEGIN IMMEDIATE`` so concurrent writers queue on the
  database lock exactly as they would queue on row locks in Postgres.
- The app's ``get_db`` and ``get_store`` dependencies are overridden to use
  the per-test engine; ``login`` swaps the ``get_current_user`` override to
  act as a given user (the real resolver belongs to the auth layer).
- Helpers that seed data open their own short transaction and commit, so
  no test ever holds the database lock while calling the store.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from conduit.database import Base, configure_sqlite, get_db
from conduit.dependencies import get_current_user, get_store
from conduit.main import app
from conduit.middleware import install_query_counter
from conduit.models import follows
from conduit.schemas import ArticleCreate, CurrentUser, UserCreate
from conduit.services import user_service
from conduit.services.article_store import ArticleStore


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'conduit.db'}")
    configure_sqlite(engine)
    install_query_counter(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> ArticleStore:
    return ArticleStore(session_factory, timeout=10)


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(session_factory):
    """Create and commit a user; returns the resolved CurrentUser."""

    async def _make(username: str, bio: str | None = None) -> CurrentUser:
        async with session_factory() as session, session.begin():
            return await user_service.create_user(
                session,
                UserCreate(username=username, email=f"{username}@example.com", bio=bio),
            )

    return _make


@pytest.fixture
def make_follow(session_factory):
    """
    Insert a follow row directly, bypassing the self-follow check so
    tests can plant stray rows.
    """

    async def _follow(follower: CurrentUser, followed: CurrentUser) -> None:
        async with session_factory() as session, session.begin():
            await session.execute(
                insert(follows).values(follower_id=follower.id, followed_id=followed.id)
            )

    return _follow


@pytest.fixture
def make_article(store):
    async def _make(author: CurrentUser, title: str = "Hello World", tags: list[str] | None = None):
        return await store.insert(
            ArticleCreate(
                title=title,
                description=f"About {title}",
                body=f"Body of {title}",
                tag_list=tags or [],
            ),
            author,
        )

    return _make


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def async_client(store, session_factory) -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Act as *user* for subsequent requests; ``None`` goes anonymous."""

    def _login(user: CurrentUser | None) -> None:
        if user is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = lambda: user

    return _login
