"""
Base domain model helpers for the Study Twin backend.

Purpose
-------
Shared building blocks for the pure domain layer: the domain event record
and field validators used by the frozen value objects in this package.

Non-Responsibilities
--------------------
- Persistence (handled by the progression store)
- Database schema (handled by SQLAlchemy models)
- Publishing events (handled by the service layer via EventBus)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.modules.shared.exceptions import ValidationError


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass(frozen=True)
class DomainEvent:
    """
    A state change to announce once it has been persisted.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "progression.leveled_up")
    payload : Dict[str, Any]
        Event payload with relevant data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(ValidationError):
    """
    Raised when a domain value object is constructed with invalid values.

    Part of the `ValidationError` family so callers can handle malformed
    input from the domain and service layers the same way.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(field or "value", message)


def validate_integer(value: Any, field_name: str) -> None:
    """
    Validate that a value is a real integer (``bool`` is rejected).

    Raises
    ------
    DomainValidationError
        If value is not an int
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise DomainValidationError(
            f"{field_name} must be an integer, got {type(value).__name__}",
            field=field_name,
        )


def validate_positive(value: int, field_name: str) -> None:
    """
    Validate that a value is a positive integer.

    Raises
    ------
    DomainValidationError
        If value is not positive
    """
    validate_integer(value, field_name)
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    """
    Validate that a value is a non-negative integer.

    Raises
    ------
    DomainValidationError
        If value is negative
    """
    validate_integer(value, field_name)
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def clean_text(value: Any, field_name: str, max_length: int) -> Optional[str]:
    """
    Strip optional free text; blank becomes None.

    Raises
    ------
    DomainValidationError
        If value is not text or exceeds ``max_length`` once stripped
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise DomainValidationError(f"{field_name} must be text", field=field_name)
    cleaned = value.strip()
    if not cleaned:
        return None
    if len(cleaned) > max_length:
        raise DomainValidationError(
            f"{field_name} must be at most {max_length} characters",
            field=field_name,
        )
    return cleaned


def require_text(value: Any, field_name: str, max_length: int) -> str:
    """Like `clean_text`, but blank input is rejected."""
    cleaned = clean_text(value, field_name, max_length)
    if cleaned is None:
        raise DomainValidationError(f"{field_name} is required", field=field_name)
    return cleaned
