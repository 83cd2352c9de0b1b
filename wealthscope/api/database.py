"""Async engine and session handling for the portfolio store."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ..config import get_settings


class Base(AsyncAttrs, DeclarativeBase):
    """Declarative base for the ledger, holdings and summary tables."""


class Database:
    """Own one async engine and hand out sessions bound to it.

    ``url`` defaults to the configured ``database_url``; tests pass a
    ``sqlite+aiosqlite`` URL on a temporary path.
    """

    def __init__(self, url: str | None = None, *, echo: bool = False) -> None:
        self._url = url or get_settings().database_url
        self._engine = create_async_engine(self._url, echo=echo)
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)

    @property
    def url(self) -> str:
        return self._url

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_all(self) -> None:
        """Create any missing portfolio tables."""

        # Importing the models registers their tables on Base.metadata
        from . import models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._sessions() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session that commits on exit and rolls back on any error."""

        async with self._sessions.begin() as session:
            yield session


__all__ = ["Base", "Database"]
