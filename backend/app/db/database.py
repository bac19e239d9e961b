"""Async engine and session factory for the credit and quota stores."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from ..core.config import get_settings


def resolve_database_url(url: str) -> str:
    """Point postgres URLs at the asyncpg driver (hosted providers hand out postgres://)."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


settings = get_settings()
DATABASE_URL = resolve_database_url(settings.database_url)

engine = create_async_engine(
    DATABASE_URL,
    echo=settings.database_echo,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)

# Shared by request handlers and the ledger services; rows stay readable after commit
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for FastAPI dependencies."""
    async with async_session() as session:
        yield session


async def init_db() -> None:
    """Create missing tables. Deployments on PostgreSQL run the Alembic migrations instead."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
