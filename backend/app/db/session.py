from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings


def build_engine(url: str | None = None, **overrides: Any) -> AsyncEngine:
    """
    Async engine for the API, Alembic and tests.
    Defaults to the CLEAN URL to avoid asyncpg errors with sslmode/channel_binding query params.
    """
    url = url or settings.DATABASE_URL_ASYNC_CLEAN
    kwargs: dict[str, Any] = {"echo": False, "future": True}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True  # detects dead connections before using them
        kwargs["pool_recycle"] = 300  # recycle connections periodically (seconds)
    kwargs.update(overrides)
    return create_async_engine(url, **kwargs)


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine: AsyncEngine = build_engine()
AsyncSessionLocal = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides one AsyncSession per request.
    Always closes the session after the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
