from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from app.platform.config import settings


def _pool_options(url: str) -> dict:
    # sqlite file connections are opened per checkout
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {
        "pool_size": 20,
        "max_overflow": 30,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


def to_sync_url(url: str) -> str:
    """Convert an async driver URL to its sync counterpart for Celery workers."""
    if url.startswith("postgresql+asyncpg://"):
        return url.replace("postgresql+asyncpg://", "postgresql://")
    if url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite+aiosqlite://", "sqlite://")
    return url


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_pre_ping=True,
    **_pool_options(settings.DATABASE_URL),
)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False, autocommit=False)


async def get_db():
    async with SessionLocal() as session:
        yield session


async def create_tables():
    from app.platform.db.base import Base
    import app.features.scan.models  # noqa: F401  registers the scan tables

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Shared sync engine for Celery tasks, created on first use
_sync_engine = None
_sync_session_factory = None


def get_sync_db():
    """Get a sync database session for Celery tasks."""
    global _sync_engine, _sync_session_factory

    if _sync_engine is None:
        db_url = to_sync_url(settings.DATABASE_URL)
        _sync_engine = create_engine(db_url, pool_pre_ping=True, **_pool_options(db_url))
        _sync_session_factory = sessionmaker(autocommit=False, autoflush=False, bind=_sync_engine)

    return _sync_session_factory()
