"""
Async engine, session factory and schema setup for the user, role and grant tables
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
import structlog

from kalustovahti.core.config import DATABASE_CONFIG, settings

logger = structlog.get_logger()

POOL_ONLY_OPTIONS = ("pool_size", "max_overflow", "pool_timeout", "pool_recycle")


def _engine_options(url: str) -> tuple[str, dict]:
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://"):]

    options = dict(DATABASE_CONFIG)
    if url.startswith("postgresql"):
        options["connect_args"] = {"server_settings": {"application_name": "kalustovahti-api"}}
    else:
        # SQLite has no queue pool to size
        for key in POOL_ONLY_OPTIONS:
            options.pop(key, None)
    return url, options


database_url, engine_options = _engine_options(settings.DATABASE_URL)
engine = create_async_engine(database_url, **engine_options)

# Permission reads open short-lived sessions from here as well
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """Request-scoped session; commits when the endpoint returns, rolls back if it raises"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def check_database_health() -> bool:
    try:
        async with engine.connect() as conn:
            return await conn.scalar(text("SELECT 1")) == 1
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False


async def init_database():
    """Create any missing tables at startup; existing tables are left as they are"""
    from kalustovahti.models import audit_log, role, user  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error("Database schema setup failed", error=str(e))
        raise
    logger.info("Database schema ready", tables=sorted(Base.metadata.tables))


async def close_database():
    try:
        await engine.dispose()
    except Exception as e:
        logger.error("Error closing database connections", error=str(e))
        return
    logger.info("Database connections closed")
