"""
Core infrastructure layer for the Study Twin backend.

Subpackages
-----------
- config: static configuration from environment variables
- database: async engine, sessions, retry policy and metrics
- event: in-process event bus
- logging: structured logging and log context
- validation: input validation helpers

This package only groups the subsystems; import from the submodules
directly, e.g. ``from src.core.database import DatabaseService``.
"""
