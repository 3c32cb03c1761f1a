"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management for the Study Twin
backend. Provides atomic transactions, health checks and schema bootstrap for
the progression store.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance with connection pooling
- Provide async context managers for sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Expose a lightweight health check
- Record metrics for engine lifecycle and transactions
- Configure statement timeouts for PostgreSQL connections

Non-Responsibilities
--------------------
- Retry policies for write conflicts (handled by DatabaseRetryPolicy)
- Translating driver errors into domain errors (handled by the store)
- Domain logic or event emission

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never call `session.commit()` inside store or service code

**Connection Pooling**:
- QueuePool outside tests (configurable pool_size and max_overflow)
- NullPool when ``ENVIRONMENT=testing`` so no connection outlives a test's
  event loop

Usage Example
-------------
>>> await DatabaseService.initialize()
>>> async with DatabaseService.get_transaction() as session:
>>>     twin = await session.get(StudyTwin, twin_id)
>>>     ...  # commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool, QueuePool

from src.core.config.config import Config
from src.core.database.metrics import DatabaseMetrics
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the database settings for the engine's lifetime."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize(url=None) -> Create engine and session factory
    - shutdown() -> Dispose engine
    - get_session() -> Session without automatic commit
    - get_transaction() -> Atomic write transaction (preferred)
    - health_check() -> Fast reachability check
    - create_all() -> Create tables for all registered models
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _get_init_lock(cls) -> asyncio.Lock:
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str]) -> _DatabaseConfigSnapshot:
        database_url = url or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        return _DatabaseConfigSnapshot(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            pool_class=NullPool if Config.is_testing() else QueuePool,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
        )

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent. ``url`` overrides ``Config.DATABASE_URL`` (used by
        integration tests pointing at a throwaway container).

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._get_init_lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            try:
                config = cls._build_config_snapshot(url)

                engine_kwargs: Dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is QueuePool:
                    engine_kwargs.update(
                        pool_size=config.pool_size,
                        max_overflow=config.max_overflow,
                        pool_recycle=config.pool_recycle,
                        pool_timeout=config.pool_timeout,
                        pool_pre_ping=True,
                    )

                cls._engine = create_async_engine(config.url, **engine_kwargs)
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                cls._config_snapshot = config
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            DatabaseMetrics.record_engine_initialized(
                url_scheme=config.url_scheme,
                pool_class=config.pool_class.__name__,
            )
            logger.info(
                "DatabaseService initialized",
                extra={
                    "url_scheme": config.url_scheme,
                    "pool_class": config.pool_class.__name__,
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call when not initialized."""
        async with cls._get_init_lock():
            if cls._engine is None:
                return

            try:
                await cls._engine.dispose()
                DatabaseMetrics.record_engine_shutdown()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    # ========================================================================
    # Schema
    # ========================================================================

    @classmethod
    async def create_all(cls) -> None:
        """Create all tables registered on the declarative Base."""
        cls._ensure_initialized()
        assert cls._engine is not None

        from src.database.models import Base

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured", extra={"tables": sorted(Base.metadata.tables)})

    @classmethod
    async def drop_all(cls) -> None:
        """Drop all tables registered on the declarative Base."""
        cls._ensure_initialized()
        assert cls._engine is not None

        from src.database.models import Base

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Run ``SELECT 1`` against the engine.

        Returns False instead of raising when the database is unreachable.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            DatabaseMetrics.record_health_check(success=False, duration_ms=0.0)
            return False

        start = time.perf_counter()
        success = False
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            success = True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            DatabaseMetrics.record_health_check(success=success, duration_ms=duration_ms)

        return success

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    async def _apply_statement_timeout(cls, session: AsyncSession) -> None:
        config = cls._config_snapshot
        if config is not None and config.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}")
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for reads.

        For write operations use `get_transaction()`.
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

        Commits when the block exits normally. On any exception the
        transaction is rolled back and the exception re-raised, so nothing
        written inside the block survives a failed attempt.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
                await session.commit()
            except BaseException as exc:
                await session.rollback()
                duration_ms = (time.perf_counter() - start) * 1000.0
                DatabaseMetrics.record_transaction_rolled_back(
                    duration_ms=duration_ms,
                    error_type=type(exc).__name__,
                )
                logger.debug(
                    "Database transaction rolled back",
                    extra={"error_type": type(exc).__name__, "duration_ms": duration_ms},
                )
                raise

            duration_ms = (time.perf_counter() - start) * 1000.0
            DatabaseMetrics.record_transaction_committed(duration_ms=duration_ms)
            logger.debug("Database transaction committed", extra={"duration_ms": duration_ms})
