"""
Database Models Package
=======================

SQLAlchemy ORM models for the Study Twin backend.

- Schema-only, no business logic
- ``Mapped[]`` syntax with ``mapped_column()``
- Optimistic locking via a ``version`` column on mutable rows

Domain Organization:
--------------------
- progression: StudyTwin (per-user progression), StudySession (append-only log)
- study_aids: GeneratedMaterial (saved notes), Doubt (answered questions)
- enums: shared type-safe enumerations
"""

from src.core.database.base import Base

from . import enums
from .progression import StudySession, StudyTwin
from .study_aids import Doubt, GeneratedMaterial

__all__ = [
    "Base",
    "StudyTwin",
    "StudySession",
    "GeneratedMaterial",
    "Doubt",
    "enums",
]
