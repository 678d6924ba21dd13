from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

# Pre-ping and recycle keep pooled connections usable after the database or a proxy
# drops idle ones; both are tunable per deployment (DB_POOL_PRE_PING, DB_POOL_RECYCLE_SECONDS).
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=settings.db_pool_recycle_seconds,
)

# expire_on_commit=False: fee services build responses from rows after committing.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """One session per request; fee operations commit or roll back explicitly."""
    async with AsyncSessionLocal() as session:
        yield session
