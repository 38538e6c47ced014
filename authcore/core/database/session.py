from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from authcore.core.database.base import Base
from authcore.main.config import config

engine = create_async_engine(
    config.postgres.dsn_async,
    echo=config.postgres.DB_ECHO,
    pool_pre_ping=True,
    pool_recycle=60 * 30,
)

async_session = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession]:
    async with async_session() as session:
        yield session


async def init_models() -> None:
    """Create missing tables for every model registered on ``Base``."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
