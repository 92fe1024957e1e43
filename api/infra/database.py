import time
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Depends
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from api.config.settings import Settings, get_settings


class Base(DeclarativeBase):
    """Declarative base for render_jobs, publish_schedule and the content tables."""
    pass


def engine_options(settings: Settings) -> dict[str, Any]:
    """Engine kwargs for the configured URL. SQLite takes no pool sizing."""
    options: dict[str, Any] = {"echo": settings.debug and settings.log_level == "DEBUG"}
    if make_url(settings.database_url).get_backend_name() == "sqlite":
        options["connect_args"] = {"timeout": settings.db_pool_timeout}
        return options

    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
    )
    return options


class Database:
    """Engine plus session factory.

    Publish workers each open their own session from ``SessionLocal``; one
    AsyncSession is never shared between tasks.
    """

    def __init__(self, settings: Settings, engine: AsyncEngine | None = None):
        self.settings = settings
        self.engine = engine or create_async_engine(
            settings.database_url, **engine_options(settings)
        )
        self.SessionLocal = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def ping(self, session: AsyncSession | None = None) -> float:
        """Round-trip ``SELECT 1``; returns elapsed milliseconds."""
        started = time.perf_counter()
        if session is not None:
            await session.execute(text("SELECT 1"))
        else:
            async with self.SessionLocal() as own_session:
                await own_session.execute(text("SELECT 1"))
        return round((time.perf_counter() - started) * 1000, 2)

    async def close(self):
        await self.engine.dispose()


_database: Database | None = None


def get_database(settings: Settings = Depends(get_settings)) -> Database:
    """Process-wide Database, created on first use."""
    global _database
    if _database is None:
        _database = Database(settings)
    return _database


async def get_session(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; rolled back if the handler raises."""
    async with database.SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


DatabaseDep = Depends(get_database)
SessionDep = Depends(get_session)
