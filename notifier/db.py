"""
Database configuration with SQLAlchemy 2.0 async support.
"""

import asyncio
import logging
import ssl

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from notifier.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _get_engine_kwargs(db_url: str) -> dict:
    """Pool and SSL arguments for the configured database.

    Managed PostgreSQL hosts require SSL; local hosts and SQLite do not.
    SQLite engines take no pool sizing arguments.
    """
    if db_url.startswith("sqlite"):
        return {}

    kwargs: dict = {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,  # Verify connections before using
    }

    local_hosts = ["localhost", "127.0.0.1", "@db:", "@db/", "@postgres:", "@postgres/"]
    if not any(host in db_url for host in local_hosts):
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE  # Managed DBs often use self-signed certs
        kwargs["connect_args"] = {"ssl": ssl_context}
        logger.info("SSL enabled for database connection")

    return kwargs


# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_get_engine_kwargs(settings.database_url),
)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db(max_retries: int = 10, retry_delay: float = 5) -> None:
    """Create tables if needed, retrying while the database comes up."""
    # Import models so they're registered on the metadata
    from notifier.models import campaign, push_token  # noqa: F401

    for attempt in range(1, max_retries + 1):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database initialized successfully")
            return
        except (OperationalError, OSError) as e:
            if attempt == max_retries:
                logger.error("Database connection failed after %d attempts", max_retries)
                raise
            logger.warning(
                "Database connection attempt %d/%d failed: %s; retrying in %ss",
                attempt, max_retries, e, retry_delay,
            )
            await asyncio.sleep(retry_delay)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
