"""Async engine, session factory and schema helpers for the API and the scripts."""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .models import Base


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    options = {"echo": echo}
    if not database_url.startswith("sqlite"):
        options.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
    return create_async_engine(database_url, **options)


engine = build_engine(settings.database_url, settings.database_echo)

# Services read back what they wrote after commit, so nothing is expired
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(target: AsyncEngine = engine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; services commit, anything left open is rolled back."""
    async with async_session() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()
