"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite, so no Postgres instance is needed.
- StaticPool makes every session share the one in-memory connection
  (an in-memory database is connection-scoped).
- Foreign keys are switched on for that connection so ON DELETE CASCADE
  behaves as it does on PostgreSQL.
- ``get_db`` is overridden so request handlers use the test session
  factory.
- Tables are created before and dropped after every test.
- Redis is disabled (``cache._redis = None``); the CacheManager turns
  every call into a no-op, so tests exercise the real database paths.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db, install_sqlite_foreign_keys
from app.main import app
from app.cache import cache
from app.middleware import install_query_counter, is_write_statement
from app.models import Article, Category, User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)
install_sqlite_foreign_keys(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for seeding data and calling services
    directly.  Workflows open their own transaction, so seed helpers
    commit before the workflow under test runs.
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def write_log():
    """
    Capture every INSERT/UPDATE/DELETE issued on the test engine while the
    test runs.
    """
    statements: list[str] = []

    def _capture(conn, cursor, statement, parameters, context, executemany):
        if is_write_statement(statement):
            statements.append(statement)

    event.listen(engine_test.sync_engine, "before_cursor_execute", _capture)
    yield statements
    event.remove(engine_test.sync_engine, "before_cursor_execute", _capture)


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

class Seeder:
    """Commits rows one at a time and hands back their ids."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def user(self, username: str) -> int:
        user = User(username=username, email=f"{username}@example.com")
        self.db.add(user)
        await self.db.commit()
        return user.id

    async def category(self, name: str) -> int:
        category = Category(name=name)
        self.db.add(category)
        await self.db.commit()
        return category.id

    async def article(
        self,
        author_id: int,
        title: str,
        upvotes: int = 0,
        category_ids: tuple[int, ...] = (),
    ) -> int:
        article = Article(
            title=title,
            slug=title.lower().replace(" ", "-"),
            content=f"{title} content",
            upvotes=upvotes,
            author_id=author_id,
        )
        if category_ids:
            result = await self.db.execute(
                select(Category).where(Category.id.in_(list(category_ids)))
            )
            article.categories = list(result.scalars().all())
        self.db.add(article)
        await self.db.commit()
        return article.id


@pytest.fixture
def seed(db_session: AsyncSession) -> Seeder:
    return Seeder(db_session)


async def fetch_scalars(stmt) -> list:
    """Run *stmt* on a fresh session so assertions never see stale identity-map rows."""
    async with async_session_test() as session:
        return list((await session.execute(stmt)).scalars().all())


@pytest.fixture
def fetch():
    return fetch_scalars
