"""
Database Metrics - Infrastructure Observability Facade

Purpose
-------
Backend-agnostic metrics facade for database and progression-store telemetry:
engine lifecycle, health checks, transactions, optimistic-concurrency
conflicts and retries.

Responsibilities
----------------
- Define a stable metrics API via the `DatabaseMetrics` static facade
- Support pluggable backends via `AbstractDatabaseMetricsBackend`
- Ship an in-process counter backend (`InMemoryMetricsBackend`) used by
  default so retry and conflict rates are inspectable without a monitoring
  stack
- Expose `snapshot()` / `reset()` for health endpoints and tests

Non-Responsibilities
--------------------
- Database I/O or session management (DatabaseService handles this)
- Domain logic or business rules

Usage Example
-------------
>>> DatabaseMetrics.record_write_conflict(operation="apply_xp")
>>> DatabaseMetrics.snapshot()["write_conflicts"]
1
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, Dict, Optional

from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Abstract Backend Interface
# ============================================================================


class AbstractDatabaseMetricsBackend(ABC):
    """
    Interface for pluggable database metrics backends.

    Implementing classes send metrics to their chosen monitoring system
    (Prometheus, StatsD, CloudWatch, etc.).
    """

    @abstractmethod
    def record_engine_initialized(self, *, url_scheme: str, pool_class: str) -> None:
        ...

    @abstractmethod
    def record_engine_shutdown(self) -> None:
        ...

    @abstractmethod
    def record_health_check(self, *, success: bool, duration_ms: float) -> None:
        ...

    @abstractmethod
    def record_transaction_committed(self, *, duration_ms: float) -> None:
        ...

    @abstractmethod
    def record_transaction_rolled_back(self, *, duration_ms: float, error_type: str) -> None:
        ...

    @abstractmethod
    def record_write_conflict(self, *, operation: str) -> None:
        """Record a conditional update that matched no row."""
        ...

    @abstractmethod
    def record_retry_attempt(
        self,
        *,
        operation: str,
        attempt: int,
        will_retry: bool,
        error_type: str,
    ) -> None:
        ...

    @abstractmethod
    def record_retry_give_up(self, *, operation: str, attempt: int, error_type: str) -> None:
        ...

    @abstractmethod
    def snapshot(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    def reset(self) -> None:
        ...


# ============================================================================
# In-Process Counter Backend
# ============================================================================


class InMemoryMetricsBackend(AbstractDatabaseMetricsBackend):
    """Thread-safe counters kept in process memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter = Counter()
        self._by_operation: Dict[str, Counter] = {}
        self._last_health: Optional[Dict[str, Any]] = None

    def _incr(self, key: str, operation: Optional[str] = None) -> None:
        with self._lock:
            self._counters[key] += 1
            if operation is not None:
                self._by_operation.setdefault(operation, Counter())[key] += 1

    def record_engine_initialized(self, *, url_scheme: str, pool_class: str) -> None:
        self._incr("engine_initialized")

    def record_engine_shutdown(self) -> None:
        self._incr("engine_shutdown")

    def record_health_check(self, *, success: bool, duration_ms: float) -> None:
        self._incr("health_checks_passed" if success else "health_checks_failed")
        with self._lock:
            self._last_health = {"success": success, "duration_ms": round(duration_ms, 2)}

    def record_transaction_committed(self, *, duration_ms: float) -> None:
        self._incr("transactions_committed")

    def record_transaction_rolled_back(self, *, duration_ms: float, error_type: str) -> None:
        self._incr("transactions_rolled_back")

    def record_write_conflict(self, *, operation: str) -> None:
        self._incr("write_conflicts", operation)

    def record_retry_attempt(
        self,
        *,
        operation: str,
        attempt: int,
        will_retry: bool,
        error_type: str,
    ) -> None:
        self._incr("retry_attempts", operation)

    def record_retry_give_up(self, *, operation: str, attempt: int, error_type: str) -> None:
        self._incr("retry_give_ups", operation)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            data: Dict[str, Any] = {
                key: self._counters.get(key, 0)
                for key in (
                    "engine_initialized",
                    "engine_shutdown",
                    "health_checks_passed",
                    "health_checks_failed",
                    "transactions_committed",
                    "transactions_rolled_back",
                    "write_conflicts",
                    "retry_attempts",
                    "retry_give_ups",
                )
            }
            data["by_operation"] = {op: dict(c) for op, c in self._by_operation.items()}
            data["last_health_check"] = self._last_health
        return data

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._by_operation.clear()
            self._last_health = None


# ============================================================================
# Static Facade
# ============================================================================


class DatabaseMetrics:
    """
    Static facade for database metrics.

    Infrastructure code calls these classmethods to emit metrics. The default
    backend counts in memory; `configure_backend()` swaps in another one.
    """

    _backend: AbstractDatabaseMetricsBackend = InMemoryMetricsBackend()

    @classmethod
    def configure_backend(cls, backend: AbstractDatabaseMetricsBackend) -> None:
        cls._backend = backend
        logger.info(
            "Database metrics backend configured",
            extra={"backend_class": type(backend).__name__},
        )

    # ------------------------------------------------------------------------
    # Engine Lifecycle
    # ------------------------------------------------------------------------

    @classmethod
    def record_engine_initialized(cls, *, url_scheme: str, pool_class: str) -> None:
        cls._backend.record_engine_initialized(url_scheme=url_scheme, pool_class=pool_class)

    @classmethod
    def record_engine_shutdown(cls) -> None:
        cls._backend.record_engine_shutdown()

    @classmethod
    def record_health_check(cls, *, success: bool, duration_ms: float) -> None:
        cls._backend.record_health_check(success=success, duration_ms=duration_ms)

    # ------------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------------

    @classmethod
    def record_transaction_committed(cls, *, duration_ms: float) -> None:
        cls._backend.record_transaction_committed(duration_ms=duration_ms)

    @classmethod
    def record_transaction_rolled_back(cls, *, duration_ms: float, error_type: str) -> None:
        cls._backend.record_transaction_rolled_back(
            duration_ms=duration_ms, error_type=error_type
        )

    # ------------------------------------------------------------------------
    # Concurrency & Retries
    # ------------------------------------------------------------------------

    @classmethod
    def record_write_conflict(cls, *, operation: str) -> None:
        cls._backend.record_write_conflict(operation=operation)

    @classmethod
    def record_retry_attempt(
        cls,
        *,
        operation: str,
        attempt: int,
        will_retry: bool,
        error_type: str,
    ) -> None:
        cls._backend.record_retry_attempt(
            operation=operation,
            attempt=attempt,
            will_retry=will_retry,
            error_type=error_type,
        )

    @classmethod
    def record_retry_give_up(cls, *, operation: str, attempt: int, error_type: str) -> None:
        cls._backend.record_retry_give_up(
            operation=operation, attempt=attempt, error_type=error_type
        )

    # ------------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------------

    @classmethod
    def snapshot(cls) -> Dict[str, Any]:
        return cls._backend.snapshot()

    @classmethod
    def reset(cls) -> None:
        cls._backend.reset()
