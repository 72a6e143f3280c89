"""
Database engine and session management using SQLAlchemy 2.x (async).

The storage handle is an explicitly constructed `Database` object: the
application opens one in its lifespan and disposes it at shutdown. Schema
changes go through Alembic; `create_all`/`drop_all` exist for tests and
local tooling only.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from garagebook.lib.logging import get_logger
from garagebook.lib.settings import settings


logger = get_logger(__name__)

# Seconds a SQLite writer waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = 30


# Base class for all SQLAlchemy models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(session: AsyncSession, model):
    """
    Dialect-specific INSERT supporting ON CONFLICT for the session's engine.

    Usage:
        stmt = upsert_insert(session, Customer).values(...).on_conflict_do_nothing(
            index_elements=["contact_key"]
        )
    """
    dialect = session.bind.dialect.name
    try:
        insert = _UPSERT_DIALECTS[dialect]
    except KeyError:
        raise RuntimeError(f"Upsert not supported for dialect {dialect}")
    return insert(model)


def _enable_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT * 1000}")
    cursor.close()


class Database:
    """
    Storage handle owning the async engine and session factory.

    Usage:
        database = Database(settings.database_url)
        async with database.session() as session:
            ...
        await database.dispose()
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or settings.database_url
        self.dialect = make_url(self.url).get_backend_name()

        engine_kwargs = {
            "echo": settings.database_echo if echo is None else echo,
            "pool_pre_ping": True,  # Verify connections before using
        }
        if self.dialect == "sqlite":
            engine_kwargs["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
        else:
            engine_kwargs["pool_size"] = 5
            engine_kwargs["max_overflow"] = 10

        self.engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)

        if self.dialect == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_pragmas)

        self._sessionmaker = async_sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

        logger.info("Database handle created", extra={"dialect": self.dialect})

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session; rolls back on error and always closes.

        Commits are explicit: callers commit each unit of work themselves.
        """
        session = self._sessionmaker()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def ping(self) -> bool:
        """Return True if the store answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def create_all(self) -> None:
        """
        Create all tables. For tests and local tooling;
        deployments use `alembic upgrade head`.
        """
        # Register models with Base.metadata
        import garagebook.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        """
        Drop all tables. Use with caution - for testing only.
        """
        import garagebook.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
        logger.info("Database handle disposed")
