"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management. Provides atomic
transactions with commit-on-success / rollback-on-error semantics, which is
the only path by which player and session state is mutated.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine with connection pooling
- Provide async context managers for read-only sessions and transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Configure statement timeouts for PostgreSQL connections
- Provide idempotent initialization with async lock protection

Non-Responsibilities
--------------------
- Migrations (schema is created with ``create_schema`` in dev and tests)
- Domain logic or event emission

Architecture Notes
------------------
**Transaction Model**:
- ``get_transaction()`` is the primary interface for all state mutations
- Never call ``session.commit()`` inside service code
- Use pessimistic locks via ``BaseRepository.get_for_update`` /
  ``find_one_where(..., for_update=True)``

**Connection Pooling**:
- QueuePool for PostgreSQL
- NullPool for SQLite and testing environments

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
>>>     player = await player_repo.get_for_update(session, player_id)
>>>     player.coins += 100
>>>     # Automatic commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the database configuration for the engine's lifetime."""

    url: str
    echo: bool
    pool_class: Optional[Type[Pool]]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize() / shutdown()
    - get_session() -> read-only access
    - get_transaction() -> atomic write transaction (preferred)
    - create_schema() -> create all tables (dev/test)
    - health_check()
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str]) -> _DatabaseConfigSnapshot:
        database_url = url or getattr(Config, "DATABASE_URL", None)
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError("DATABASE_URL must be configured as a non-empty string")

        # QueuePool is the engine default; NullPool when the DB is local or under test
        pool_class: Optional[Type[Pool]] = None
        if database_url.startswith("sqlite") or Config.is_testing():
            pool_class = NullPool

        return _DatabaseConfigSnapshot(
            url=database_url,
            echo=bool(getattr(Config, "DATABASE_ECHO", False)),
            pool_class=pool_class,
            pool_size=int(getattr(Config, "DATABASE_POOL_SIZE", 5)),
            max_overflow=int(getattr(Config, "DATABASE_MAX_OVERFLOW", 10)),
            pool_recycle=int(getattr(Config, "DATABASE_POOL_RECYCLE", 1800)),
            statement_timeout_ms=int(getattr(Config, "DATABASE_STATEMENT_TIMEOUT_MS", 30_000)),
        )

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the engine and session factory. Idempotent.

        ``url`` overrides Config.DATABASE_URL (used by tests and tooling).
        """
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()

        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            try:
                config = cls._build_config_snapshot(url)
                engine_kwargs: dict[str, Any] = {"echo": config.echo}

                if config.pool_class is NullPool:
                    engine_kwargs["poolclass"] = NullPool
                else:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_pre_ping": True,
                        }
                    )

                if config.is_sqlite:
                    engine_kwargs["connect_args"] = {"timeout": 30}

                cls._engine = create_async_engine(config.url, **engine_kwargs)
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                cls._config_snapshot = config

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__ if config.pool_class else "QueuePool",
                    },
                )

            except DatabaseInitializationError:
                raise
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(f"Database initialization failed: {exc}") from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call when not initialized."""
        if cls._engine is None:
            logger.debug("DatabaseService not initialized; nothing to shutdown")
            return

        try:
            await cls._engine.dispose()
            logger.info("DatabaseService shutdown complete")
        finally:
            cls._engine = None
            cls._session_factory = None
            cls._config_snapshot = None

    @classmethod
    async def create_schema(cls) -> None:
        """Create every table registered on ``Base.metadata``."""
        cls._ensure_initialized()
        assert cls._engine is not None

        # Model modules must be imported so their tables are registered
        import src.database.models  # noqa: F401

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created", extra={"tables": len(Base.metadata.tables)})

    @classmethod
    async def drop_schema(cls) -> None:
        cls._ensure_initialized()
        assert cls._engine is not None
        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @classmethod
    async def health_check(cls) -> bool:
        """Lightweight ``SELECT 1``. Never raises."""
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    async def _apply_statement_timeout(cls, session: AsyncSession) -> None:
        config = cls._config_snapshot
        if config is not None and config.is_postgres:
            await session.execute(text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}"))

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for read-only work.

        For writes prefer ``get_transaction()``.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            await cls._apply_statement_timeout(session)
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        **On Success**: commits.
        **On Exception**: rolls back, logs with error context, re-raises the
        original exception.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    f"{type(exc).__name__} in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise

            except Exception as exc:
                await session.rollback()
                # Domain errors are expected client outcomes; keep them out of ERROR
                logger.debug(
                    "Transaction rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise
