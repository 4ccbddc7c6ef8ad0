"""Async database engine and session factory (SQLite via aiosqlite)."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .models import Base


def build_engine(database_url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    return create_async_engine(
        database_url or settings.database_url,
        echo=settings.echo_sql if echo is None else echo,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
