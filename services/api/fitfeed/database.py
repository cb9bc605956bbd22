"""
Async SQLAlchemy engine + session factory.

Production runs against TiDB/MySQL through aiomysql; an in-memory SQLite URL
(aiosqlite) is accepted for local runs and the test suite. The engine is
created once at import and reused across all requests.
"""
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from fitfeed.config import settings

logger = logging.getLogger(__name__)


def engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # One shared connection, otherwise every checkout sees an empty db
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {"pool_pre_ping": True, "pool_size": 20, "max_overflow": 10}


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself on SQLite.

    The sqlite3 driver defers BEGIN until the first DML statement, which
    breaks SAVEPOINT (begin_nested) used by the engagement write paths.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def make_engine(url: str) -> AsyncEngine:
    new_engine = create_async_engine(url, echo=False, **engine_options(url))
    if url.startswith("sqlite"):
        enable_sqlite_savepoints(new_engine)
    return new_engine


engine = make_engine(settings.db_url)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create all tables if they don't exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
