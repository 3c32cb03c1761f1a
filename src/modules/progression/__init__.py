"""
Progression Module

Services
--------
- ProgressionService: load / apply XP / record study sessions with
  optimistic-concurrency writes and bounded retries

Storage
-------
- ProgressionStore: persistence contract (protocol)
- SqlProgressionStore: SQLAlchemy 2.0 async implementation
"""

from .service import ProgressionService, ProgressionUpdate
from .sql_store import SqlProgressionStore
from .store import ProgressionSnapshot, ProgressionStore, ProgressionUnitOfWork

__all__ = [
    "ProgressionService",
    "ProgressionUpdate",
    "ProgressionSnapshot",
    "ProgressionStore",
    "ProgressionUnitOfWork",
    "SqlProgressionStore",
]
