"""Database connection and session management."""
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from shortreel.config import settings

# Base class for models
Base = declarative_base()


def build_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign keys enabled."""
    url = database_url or settings.database_url
    new_engine = create_async_engine(url, echo=settings.debug, future=True)

    if new_engine.dialect.name == "sqlite":
        # Required for ON DELETE CASCADE on SQLite
        @event.listens_for(new_engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# Process-wide defaults, opened by the app lifespan
engine = build_engine()
async_session_maker = build_session_maker(engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db(bind: Optional[AsyncEngine] = None):
    """Initialize database tables."""
    import shortreel.models  # noqa: F401  registers every mapped table

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(bind: Optional[AsyncEngine] = None):
    """Close database connections."""
    await (bind or engine).dispose()
