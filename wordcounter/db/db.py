"""Database connection management using SQLModel with async drivers."""

import ssl
from contextlib import contextmanager
from typing import Iterator, Optional
from urllib.parse import urlparse, urlunparse

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from wordcounter.config.logger import app_logger
from wordcounter.config.settings import Settings
from wordcounter.errors import StoreUnavailableError


def get_db_url(settings: Settings) -> str:
    """Get database URL for SQLAlchemy with an async driver."""
    db_url = settings.effective_database_url
    if not db_url:
        raise ValueError("DATABASE_URL not configured")
    # SQLite or other non-Postgres URLs are returned as-is
    if db_url.startswith("sqlite"):
        return db_url

    # For Postgres URLs, normalize and strip sslmode (asyncpg handles SSL via connect_args)
    parsed = urlparse(db_url)
    query_parts = [p for p in parsed.query.split("&") if not p.startswith("sslmode=") and p]
    query = "&".join(query_parts)
    clean_url = urlunparse(
        (
            parsed.scheme,
            parsed.netloc,
            parsed.path,
            parsed.params,
            query,
            parsed.fragment,
        )
    )

    # Convert to asyncpg driver
    if clean_url.startswith("postgresql://"):
        clean_url = clean_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif clean_url.startswith("postgres://"):
        clean_url = clean_url.replace("postgres://", "postgresql+asyncpg://", 1)

    return clean_url


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the async engine (Postgres with asyncpg or SQLite with aiosqlite)."""
    db_url = get_db_url(settings)

    kwargs: dict = {"echo": False}
    if db_url.startswith("postgresql+asyncpg://"):
        # SSL context for hosted Postgres (no certificate verification)
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        kwargs.update(pool_size=20, max_overflow=0, connect_args={"ssl": ssl_context})

    return create_async_engine(db_url, **kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables the engine owns or reads."""
    # Import all models to register them with SQLModel
    from wordcounter.models import cache_entry, page, word_count  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    app_logger.info("Database initialized successfully")


async def close_db(engine: Optional[AsyncEngine]) -> None:
    """Close the database engine."""
    if engine is not None:
        await engine.dispose()
        app_logger.info("Database connection closed")


async def ping_database(session_maker: async_sessionmaker[AsyncSession]) -> tuple[bool, str]:
    """Run a lightweight health query against the database."""
    try:
        async with session_maker() as session:
            result = await session.execute(text("SELECT 1"))
            row = result.scalar()
            if row == 1:
                return True, "Database connection healthy"
            return False, f"Unexpected response: {row}"
    except (SQLAlchemyError, OSError) as e:
        return False, f"Database query failed: {str(e)}"


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver/ORM failures as StoreUnavailableError."""
    try:
        yield
    except SQLAlchemyError as e:
        app_logger.error(f"Store operation '{operation}' failed: {e}")
        raise StoreUnavailableError(f"{operation} failed: {e}") from e
