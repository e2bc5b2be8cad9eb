from typing import Awaitable, Callable, TypeVar

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.middleware import install_query_counter

T = TypeVar("T")


def install_sqlite_foreign_keys(engine) -> None:
    """
    Turn on foreign key enforcement for every new SQLite connection.

    SQLite ignores ``ON DELETE CASCADE`` (and every other FK clause) unless
    the pragma is set per connection.  No-op for other dialects.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)
install_sqlite_foreign_keys(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def run_in_transaction(
    db: AsyncSession, work: Callable[[AsyncSession], Awaitable[T]]
) -> T:
    """
    Run ``work(db)`` as one all-or-nothing unit.

    Commits when *work* returns and rolls back every statement it issued
    when it raises; the exception is re-raised unchanged.  *db* must not
    already be inside a transaction: the caller hands the boundary over to
    this function rather than nesting it inside a larger unit.
    """
    async with db.begin():
        return await work(db)
