"""
Study Twin Shared Module

Purpose
-------
Provides domain-level foundations for the progression, stats and study aid
modules:
- Domain exceptions and error handling
- Base service and repository patterns

Architecture
------------
- BaseService: Foundation for service classes (logging, config, events)
- BaseRepository: Type-safe database access patterns
- Domain exceptions: Caller-facing errors and store failures

Usage
-----
    from src.modules.shared import (
        BaseService,
        BaseRepository,
        EmptySessionError,
        StoreUnavailableError,
    )
"""

from __future__ import annotations

# Domain exceptions
from .exceptions import (
    CreditsExhaustedError,
    EmptySessionError,
    ErrorSeverity,
    InvalidStateError,
    RateLimitedError,
    StoreUnavailableError,
    StudyTwinDomainException,
    TextGenerationError,
    ValidationError,
    WriteConflictError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

# Base patterns
from .base_repository import BaseRepository
from .base_service import BaseService

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "StudyTwinDomainException",
    "ErrorSeverity",
    "ValidationError",
    "EmptySessionError",
    "WriteConflictError",
    "StoreUnavailableError",
    "InvalidStateError",
    "TextGenerationError",
    "RateLimitedError",
    "CreditsExhaustedError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
