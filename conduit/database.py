from sqlalchemy import Table, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from conduit.config import settings
from conduit.middleware import install_query_counter

# Dialect-specific INSERT constructs that support ON CONFLICT DO NOTHING.
_INSERT_CONSTRUCTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class Base(DeclarativeBase):
    pass


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Make a SQLite engine behave like the production database where the
    article store depends on it.

    - ``PRAGMA foreign_keys=ON`` so deleting an article cascades to its
      favorites, tag links and comments.
    - The driver's implicit transaction handling is disabled and every
      transaction starts with ``BEGIN IMMEDIATE``: concurrent writers then
      queue on the database lock instead of failing a lock upgrade halfway
      through a favorite toggle.
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def insert_ignoring_conflicts(session: AsyncSession, table: Table):
    """
    Return an ``INSERT ... ON CONFLICT DO NOTHING`` construct for *table*
    on the dialect *session* is bound to.

    The statement's rowcount is 1 when a row was created and 0 when the
    row already existed.
    """
    dialect = session.bind.dialect.name
    try:
        construct = _INSERT_CONSTRUCTS[dialect]
    except KeyError:
        raise ValueError(f"ON CONFLICT inserts are not supported on {dialect!r}") from None
    return construct(table).on_conflict_do_nothing()


def create_engine_from_settings() -> AsyncEngine:
    if settings.DATABASE_URL.startswith("sqlite"):
        new_engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)
        configure_sqlite(new_engine)
    else:
        new_engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    # Register the per-request SQL statement counter.
    install_query_counter(new_engine)
    return new_engine


# Module-level engine variable allows tests to override with a test engine.
engine = create_engine_from_settings()

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
