"""
Base Service Foundation

Purpose
-------
Provides the foundational class for Study Twin domain services. Services
orchestrate the pure domain functions, own the transaction boundary through
the progression store, and emit events once state is committed.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Config access with per-service overrides
- Event emission helpers
- Validation error wrapping

What this class does NOT do:
- Open database sessions (the store does that)
- Contain progression rules (those live in src.domain.models)

Usage
-----
    class ProgressionService(BaseService):
        def __init__(self, store, event_bus, logger, config=None):
            super().__init__(event_bus, logger, config)
            self._store = store
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional

from src.core.config.config import Config
from src.core.exceptions import ConfigurationError
from src.core.validation.input_validator import InputValidator

if TYPE_CHECKING:
    from logging import Logger

    from src.core.event.bus import EventBus
    from src.domain.models.base import DomainEvent

_MISSING = object()


class BaseService:
    """
    Base class for domain services.

    Args:
        event_bus: Event bus for post-commit notifications
        logger: Structured logger instance
        config: Optional overrides consulted before `Config`
    """

    def __init__(
        self,
        event_bus: EventBus,
        logger: Logger,
        config: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._events = event_bus
        self._config_overrides: Dict[str, Any] = dict(config or {})
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Resolve a configuration value: override mapping, then `Config`, then default.

        Raises:
            ConfigurationError: If required=True and no value is found
        """
        value = self._config_overrides.get(key, _MISSING)
        if value is _MISSING:
            value = getattr(Config, key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._events.publish(event_type, {**data, **(context or {})})

    async def emit_events(self, events: Iterable[DomainEvent]) -> None:
        """Publish collected domain events in order."""
        for event in events:
            await self.emit_event(
                event.event_name,
                event.payload,
                {"occurred_at": event.occurred_at.isoformat()},
            )

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        """
        Log a service error with full context.

        Args:
            operation: Name of the operation that failed
            error: The exception that occurred
            **context: Additional context data
        """
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    def validate_user_id(self, user_id: Any) -> str:
        return InputValidator.validate_user_id(user_id)

    def validate_non_negative_int(self, value: Any, name: str) -> int:
        return InputValidator.validate_non_negative_integer(value, name)
