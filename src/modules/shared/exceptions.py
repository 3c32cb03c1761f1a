"""
Domain exceptions for the Study Twin backend.

Purpose
-------
Define the structured, domain-specific exception hierarchy for progression
and study-session logic. Services raise these for rule violations and store
failures; callers (the UI layer) translate them into user-facing messages
such as "failed to save, please retry".

Design Notes
------------
- All domain exceptions inherit from `StudyTwinDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.

Taxonomy
--------
- EmptySessionError: zero-duration session, blocked before any write
- WriteConflictError: optimistic-concurrency check lost; retried internally
- StoreUnavailableError: store unreachable or retries exhausted
- InvalidStateError: persisted progression violates its invariant; self-healed
- ValidationError: malformed caller input
- TextGenerationError: study aid generation failed
  - RateLimitedError: generation backend throttled the request
  - CreditsExhaustedError: generation account is out of credits
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from src.core.exceptions import ErrorSeverity


class StudyTwinDomainException(Exception):
    """
    Base exception for all Study Twin domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise StudyTwinDomainException(
        ...     "Session rejected",
        ...     {"reason": "timer never started"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        """String representation for logging."""
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ValidationError(StudyTwinDomainException):
    """
    Raised when caller input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class EmptySessionError(StudyTwinDomainException):
    """
    Raised when a study session with no elapsed time is recorded.

    Nothing is persisted; the UI should keep the save action disabled
    until the timer has run.

    Args:
        timer_mode: Timer mode of the rejected session
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, timer_mode: str) -> None:
        self.timer_mode = timer_mode
        super().__init__(
            "Cannot record a study session with zero elapsed time",
            details={"timer_mode": timer_mode},
            error_code="EMPTY_SESSION",
        )


class WriteConflictError(StudyTwinDomainException):
    """
    Raised when a conditional progression write loses to a concurrent writer.

    The progression service retries these internally; callers only see a
    `StoreUnavailableError` once the retry ceiling is reached.

    Args:
        user_id: Owner of the contended progression row
        expected_version: Version the writer based its update on
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG
    DEFAULT_RETRYABLE = True

    def __init__(self, user_id: str, expected_version: int) -> None:
        self.user_id = user_id
        self.expected_version = expected_version
        super().__init__(
            f"Progression for {user_id} changed concurrently "
            f"(expected version {expected_version})",
            details={
                "user_id": user_id,
                "expected_version": expected_version,
            },
            error_code="WRITE_CONFLICT",
        )


class StoreUnavailableError(StudyTwinDomainException):
    """
    Raised when the progression store cannot complete an operation.

    Covers both an unreachable store and exhausted retries. No
    partial state is left behind, so the caller may safely retry the save.

    Args:
        operation: Name of the failed operation
        reason: Short description of the failure
        attempts: Number of attempts made before giving up
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        reason: str,
        attempts: Optional[int] = None,
    ) -> None:
        self.operation = operation
        self.reason = reason
        self.attempts = attempts
        super().__init__(
            f"Progression store unavailable during {operation}: {reason}",
            details={
                "operation": operation,
                "reason": reason,
                "attempts": attempts,
            },
            error_code="STORE_UNAVAILABLE",
        )


class InvalidStateError(StudyTwinDomainException):
    """
    Raised when a persisted progression row violates its invariant.

    Indicates prior data corruption (for example `current_xp` at or above
    `xp_to_next_level` at rest). The progression service normalizes the row
    instead of failing the caller's operation.

    Args:
        user_id: Owner of the corrupt row
        level: Stored level
        current_xp: Stored XP
        xp_to_next_level: Stored threshold
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = False

    def __init__(
        self,
        user_id: str,
        level: int,
        current_xp: int,
        xp_to_next_level: int,
    ) -> None:
        self.user_id = user_id
        self.level = level
        self.current_xp = current_xp
        self.xp_to_next_level = xp_to_next_level
        super().__init__(
            f"Progression for {user_id} violates its invariant",
            details={
                "user_id": user_id,
                "level": level,
                "current_xp": current_xp,
                "xp_to_next_level": xp_to_next_level,
            },
            error_code="INVALID_PROGRESSION_STATE",
        )


class TextGenerationError(StudyTwinDomainException):
    """
    Raised when the text-generation backend fails to produce an answer.

    Base class for the typed generation failures; also used directly for
    any failure that is neither rate limiting nor exhausted credits.

    Args:
        operation: Name of the study aid being generated
        reason: Short description of the failure
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False
    ERROR_CODE = "TEXT_GENERATION_FAILED"

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Text generation failed during {operation}: {reason}",
            details={
                "operation": operation,
                "reason": reason,
            },
            error_code=self.ERROR_CODE,
        )


class RateLimitedError(TextGenerationError):
    """
    Raised when the text-generation backend is throttling requests.

    Nothing is saved. The user may try again in a moment.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True
    ERROR_CODE = "TEXT_GENERATION_RATE_LIMITED"

    def __init__(self, operation: str, reason: str = "Rate limit exceeded") -> None:
        super().__init__(operation, reason)


class CreditsExhaustedError(TextGenerationError):
    """
    Raised when the text-generation account has run out of credits.

    Not retryable until credits are added.
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False
    ERROR_CODE = "TEXT_GENERATION_CREDITS_EXHAUSTED"

    def __init__(self, operation: str, reason: str = "Credits exhausted") -> None:
        super().__init__(operation, reason)


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, StudyTwinDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level.
    """
    if isinstance(exc, StudyTwinDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """
    Determine if an exception should trigger alerting.

    Args:
        exc: Exception to check

    Returns:
        True if severity is ERROR or CRITICAL, False otherwise.
    """
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
