"""Database connection and session management.

The ``Database`` handle is created once at startup, passed explicitly to the
stores that need it, and disposed at shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator

from sqlalchemy import make_url, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from statutory_payroll.config import Settings, get_settings
from statutory_payroll.models import Base
from statutory_payroll.services.constraint_reconciler import (
    ConstraintReconciler,
    ReconcileReport,
    default_targets,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def get_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create async database engine."""
    kwargs: dict[str, Any] = {"echo": echo}
    if make_url(database_url).get_backend_name() != "sqlite":
        kwargs.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
    return create_async_engine(database_url, **kwargs)


class Database:
    """Owned handle for the async engine and its session factory."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Database:
        settings = settings or get_settings()
        return cls(settings.database_url, echo=settings.debug)

    def connect(self) -> Database:
        """Initialize database engine and session factory (idempotent)."""
        if self._engine is None:
            self._engine = get_engine(self.database_url, echo=self.echo)
            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            logger.debug("Database engine created for %s", make_url(self.database_url).render_as_string())
        return self

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def init_schema(self, settings: Settings | None = None) -> ReconcileReport:
        """Create tables and bring the active-record indexes to their configured shape."""
        settings = settings or get_settings()
        targets = default_targets(settings)

        def _sync_init(sync_conn: Any) -> ReconcileReport:
            Base.metadata.create_all(sync_conn)
            return ConstraintReconciler(sync_conn, targets).reconcile()

        async with self.engine.begin() as conn:
            return await conn.run_sync(_sync_init)

    async def dispose(self) -> None:
        """Release all pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def __aenter__(self) -> Database:
        return self.connect()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()
