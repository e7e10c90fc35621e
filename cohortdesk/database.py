"""
cohortdesk/database.py
Database configuration: async engine, session factory and lifecycle hooks
"""
import os
import logging
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from dotenv import load_dotenv

# Import Base from orm.base to avoid circular imports
from cohortdesk.orm.base import Base
import cohortdesk.orm  # ensures all models are registered

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./cohortdesk.db")

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless the pragma is set per connection."""
    if engine.url.get_backend_name() != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str = DATABASE_URL, **kwargs) -> AsyncEngine:
    if "sqlite" in url.lower():
        # SQLite: busy timeout for concurrent writers
        kwargs.setdefault("connect_args", {"timeout": 30.0})
        new_engine = create_async_engine(url, echo=False, future=True, **kwargs)
    else:
        # PostgreSQL/MySQL: standard pool
        new_engine = create_async_engine(
            url,
            echo=False,
            future=True,
            pool_pre_ping=True,
            pool_size=kwargs.pop("pool_size", 10),
            max_overflow=kwargs.pop("max_overflow", 20),
            pool_timeout=30,
            pool_recycle=3600,
            **kwargs
        )
    enable_sqlite_foreign_keys(new_engine)
    return new_engine


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine()

AsyncSessionLocal = build_sessionmaker(engine)


async def get_db():
    """Dependency for getting async database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Create any missing tables."""
    logger.info("Initializing database...")

    try:
        logger.info(f"Database dialect: {engine.url.get_backend_name()}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("✓ Database initialization complete")

    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


async def close_db():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")
