"""
Progression Retry Policy - Optimistic Concurrency Resilience

Purpose
-------
Bounded retry policy for progression writes. A save is a read-modify-write
guarded by a version check; when a concurrent writer wins, the whole
attempt (reload, recompute, conditional write) is run again after an
exponential, jittered backoff.

Responsibilities
----------------
- Execute an async attempt with retry logic
- Classify errors as retriable or not
- Exponential backoff with jitter, capped per attempt
- Emit metrics and structured logs for each attempt

Non-Responsibilities
--------------------
- Transaction management (each attempt owns its own transaction)
- Translating exhaustion into a caller-facing error (ProgressionService)

Architecture Notes
------------------
**Retry Classification**:
- Retriable: WriteConflictError, StoreUnavailableError
- Non-retriable: everything else (validation, empty sessions, bugs)

**Backoff Strategy**:
- Formula: min(initial * 2^(attempt-1), max) + random(0, jitter)

Configuration
-------------
All values sourced from Config:
- PROGRESSION_RETRY_MAX_ATTEMPTS (default: 5)
- PROGRESSION_RETRY_INITIAL_BACKOFF_MS (default: 25)
- PROGRESSION_RETRY_MAX_BACKOFF_MS (default: 500)
- PROGRESSION_RETRY_JITTER_MS (default: 25)

Usage Example
-------------
>>> retry_policy = DatabaseRetryPolicy.from_config()
>>>
>>> async def attempt() -> ProgressionUpdate:
>>>     async with store.unit_of_work() as uow:
>>>         ...
>>>
>>> await retry_policy.execute(
>>>     attempt,
>>>     operation_name="progression.apply_xp",
>>>     context={"user_id": user_id},
>>> )

**Transaction Ownership**: wrap the operation that opens the transaction,
never retry inside an open transaction.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar

from src.core.config.config import Config
from src.core.database.metrics import DatabaseMetrics
from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import (
    StoreUnavailableError,
    StudyTwinDomainException,
    WriteConflictError,
)

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class DatabaseRetryConfig:
    """
    Configuration for progression retry behavior.

    Attributes
    ----------
    max_attempts : int
        Maximum number of attempts (including the initial attempt).
    initial_backoff_ms : int
        Backoff before the second attempt, in milliseconds.
    max_backoff_ms : int
        Upper bound for the exponential part of the backoff.
    jitter_ms : int
        Maximum random jitter added to each backoff.
    retriable_exceptions : Tuple[Type[BaseException], ...]
        Exception types considered retriable.
    """

    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int
    retriable_exceptions: Tuple[Type[BaseException], ...] = (
        WriteConflictError,
        StoreUnavailableError,
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_config(cls) -> "DatabaseRetryConfig":
        return cls(
            max_attempts=Config.PROGRESSION_RETRY_MAX_ATTEMPTS,
            initial_backoff_ms=Config.PROGRESSION_RETRY_INITIAL_BACKOFF_MS,
            max_backoff_ms=Config.PROGRESSION_RETRY_MAX_BACKOFF_MS,
            jitter_ms=Config.PROGRESSION_RETRY_JITTER_MS,
        )


# ============================================================================
# Retry Policy
# ============================================================================


class DatabaseRetryPolicy:
    """
    Execute async store operations with retry semantics.

    Public API
    ----------
    - from_config() -> Create policy from Config
    - execute(operation, operation_name, context) -> Execute with retries
    - max_attempts -> Configured attempt ceiling
    """

    def __init__(self, config: DatabaseRetryConfig) -> None:
        self._config = config

    @classmethod
    def from_config(cls) -> "DatabaseRetryPolicy":
        return cls(DatabaseRetryConfig.from_config())

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def _is_retriable(self, exc: BaseException) -> bool:
        if not isinstance(exc, self._config.retriable_exceptions):
            return False
        if isinstance(exc, StudyTwinDomainException):
            return exc.is_retryable
        return True

    def _compute_backoff_ms(self, attempt: int) -> int:
        """
        Backoff for the pause after ``attempt`` (1-indexed) failed.

        Exponential in the attempt number, capped at ``max_backoff_ms``,
        plus up to ``jitter_ms`` of random jitter.
        """
        exponent = max(attempt - 1, 0)
        capped = min(self._config.initial_backoff_ms * (2**exponent), self._config.max_backoff_ms)
        jitter = random.randint(0, self._config.jitter_ms) if self._config.jitter_ms > 0 else 0
        return capped + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or the attempt ceiling is hit.

        Raises
        ------
        Exception
            The last exception, when it is not retriable or attempts are
            exhausted.
        """
        ctx_extra = dict(context) if context else {}
        ctx_extra["retry_operation"] = operation_name

        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                error_type = type(exc).__name__
                retriable = self._is_retriable(exc)
                will_retry = retriable and attempt < self._config.max_attempts

                if not retriable:
                    raise

                DatabaseMetrics.record_retry_attempt(
                    operation=operation_name,
                    attempt=attempt,
                    will_retry=will_retry,
                    error_type=error_type,
                )
                logger.warning(
                    "Progression store attempt failed",
                    extra={
                        **ctx_extra,
                        "attempt": attempt,
                        "error_type": error_type,
                        "will_retry": will_retry,
                    },
                )

                if not will_retry:
                    DatabaseMetrics.record_retry_give_up(
                        operation=operation_name,
                        attempt=attempt,
                        error_type=error_type,
                    )
                    logger.error(
                        "Progression store retries exhausted",
                        extra={
                            **ctx_extra,
                            "attempt": attempt,
                            "error_type": error_type,
                            "max_attempts": self._config.max_attempts,
                        },
                    )
                    raise

                backoff_ms = self._compute_backoff_ms(attempt)
                logger.debug(
                    "Backing off before retry",
                    extra={**ctx_extra, "attempt": attempt, "backoff_ms": backoff_ms},
                )
                await asyncio.sleep(backoff_ms / 1000.0)
