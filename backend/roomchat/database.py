"""Database connection and session management using SQLAlchemy."""
import logging
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import AppSettings
from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the async engine and the session factory for one process."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, pool_pre_ping=True)
        if make_url(url).get_backend_name() == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self.session_factory = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
            class_=AsyncSession,
            autoflush=False,
        )

    @classmethod
    def from_config(cls, config: AppSettings) -> "Database":
        return cls(config.database_url, echo=config.database.echo_sql)

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready (%s)", make_url(self.url).render_as_string(hide_password=True))

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")


_database: Optional[Database] = None


def get_database() -> Database:
    if _database is None:
        raise RuntimeError("Database is not initialised")
    return _database


def set_database(database: Optional[Database]) -> None:
    global _database
    _database = database


def has_database() -> bool:
    return _database is not None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for an API request."""
    async with get_database().session() as session:
        try:
            yield session
        except Exception as e:
            logger.debug("Rolling back request session after %s", type(e).__name__)
            await session.rollback()
            raise
