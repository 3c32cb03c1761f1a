"""
Database subsystem for the Study Twin backend.

Provides the async SQLAlchemy engine, session management, the retry policy
used for optimistic-concurrency writes, and metrics.

Also exports ORM base classes and mixins for model definitions.
"""

from src.core.database.base import Base, IdMixin, TimestampMixin, utc_now
from src.core.database.metrics import (
    AbstractDatabaseMetricsBackend,
    DatabaseMetrics,
    InMemoryMetricsBackend,
)
from src.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from src.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "utc_now",
    # Main service
    "DatabaseService",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    # Retries
    "DatabaseRetryConfig",
    "DatabaseRetryPolicy",
    # Metrics
    "DatabaseMetrics",
    "AbstractDatabaseMetricsBackend",
    "InMemoryMetricsBackend",
]
