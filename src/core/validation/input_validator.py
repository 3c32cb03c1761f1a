"""
Input Validation Layer for Study Twin

Purpose
-------
Centralized validation for caller-supplied values entering the service
layer: user identities, XP amounts, timer modes and free-text fields.
Returns normalized values on success and raises `ValidationError` with a
clear message otherwise.

Non-Responsibilities
--------------------
- Progression rules (domain layer)
- Database constraints and persistence (store layer)

Observability
-------------
Every validation failure is logged at debug level with ``field_name``,
``raw_value`` (repr) and ``reason``.
"""

from __future__ import annotations

import re
from typing import Any, NoReturn, Optional, Sequence

from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

MAX_USER_ID_LENGTH = 64
_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validation helpers.

    All methods return the validated value and raise ValidationError on
    failure (never silently coerce bad input to a default).
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate and convert value to an integer with optional bounds.

        Accepts ints, integral floats and numeric strings. Booleans are
        rejected.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number, got a boolean")
        if isinstance(value, float) and not value.is_integer():
            _raise_validation_error(field_name, value, f"Must be a whole number, got {value}")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name, int_value, f"Must be at least {min_value}, got {int_value}"
            )
        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name, int_value, f"Cannot exceed {max_value}, got {int_value}"
            )
        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(value, field_name, min_value=1, max_value=max_value)

    @staticmethod
    def validate_non_negative_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(value, field_name, min_value=0, max_value=max_value)

    # =========================================================================
    # IDENTITY VALIDATION
    # =========================================================================

    @staticmethod
    def validate_user_id(value: Any, field_name: str = "user_id") -> str:
        """
        Validate an auth-provider user identity.

        User ids are opaque strings (typically UUIDs) of letters, digits,
        hyphens and underscores, at most 64 characters.
        """
        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be a string identifier")
        user_id = value.strip()
        if not user_id:
            _raise_validation_error(field_name, value, "Cannot be empty")
        if len(user_id) > MAX_USER_ID_LENGTH:
            _raise_validation_error(
                field_name, value, f"Cannot exceed {MAX_USER_ID_LENGTH} characters"
            )
        if not _USER_ID_PATTERN.match(user_id):
            _raise_validation_error(
                field_name, value, "May only contain letters, digits, '-' and '_'"
            )
        return user_id

    # =========================================================================
    # CHOICE & TEXT VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(value: Any, field_name: str, valid_choices: Sequence[str]) -> str:
        """Validate that value is one of the allowed options (case-insensitive)."""
        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be text")
        normalized = value.strip().lower()
        allowed = {choice.lower(): choice for choice in valid_choices}
        if normalized not in allowed:
            _raise_validation_error(
                field_name,
                value,
                f"Must be one of: {', '.join(valid_choices)}",
            )
        return allowed[normalized]
