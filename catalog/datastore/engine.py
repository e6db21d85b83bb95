"""
Database engine configuration and lifecycle.
Uses the SQLAlchemy async engine (SQLite via aiosqlite by default).
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from catalog.datastore.models import Base
from catalog.settings import global_settings

# Engine used by the entry point
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def _lock_on_begin(async_engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction take the write lock when it starts.

    pysqlite defers BEGIN until the first write, so a read-modify-write
    could read a value another connection is about to replace.
    """

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


async def create_session_factory(
    database_url: str, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine, ensure tables exist and return a session factory."""
    new_engine = create_async_engine(database_url, echo=echo)
    if new_engine.dialect.name == "sqlite":
        _lock_on_begin(new_engine)

    session_factory = async_sessionmaker(
        bind=new_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with new_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return new_engine, session_factory


async def init_db(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Initialize the database connection and table structure"""
    global engine, AsyncSessionLocal

    engine, AsyncSessionLocal = await create_session_factory(
        database_url or global_settings.database_url,
        echo=global_settings.database_echo,
    )
    return AsyncSessionLocal


async def close_db() -> None:
    """Close database connections"""
    global engine, AsyncSessionLocal
    if engine:
        await engine.dispose()
        engine = None
        AsyncSessionLocal = None

