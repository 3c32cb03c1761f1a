"""
Domain models package for the Study Twin backend.

Purpose
-------
Pure game rules with no I/O:

- progression: the Leveling Calculator and persisted-state repair
- study_session: the Session Recorder
- stats: weekly buckets, streaks, titles and milestones for the profile
- study_aids: prompts and saved records for generated notes and doubts

Design Notes
------------
Domain models are separate from database models:
- Database models (src/database/models/): anemic SQLAlchemy schemas
- Domain models (src/domain/models/): frozen value objects and pure functions

Services convert between database rows and domain values as needed.
"""

from .base import DomainEvent, DomainValidationError
from .progression import (
    LevelingResult,
    ProgressionState,
    apply_xp_delta,
    normalize_state,
    total_accumulated_xp,
    xp_threshold_for_level,
)
from .study_aids import (
    DoubtDraft,
    GeneratedMaterialDraft,
    GenerationPrompt,
    build_doubt_prompt,
    build_notes_prompt,
)
from .study_session import StudySessionDraft, StudySessionRecord, record_study_session

__all__ = [
    "DomainEvent",
    "DomainValidationError",
    "LevelingResult",
    "ProgressionState",
    "apply_xp_delta",
    "normalize_state",
    "total_accumulated_xp",
    "xp_threshold_for_level",
    "StudySessionDraft",
    "StudySessionRecord",
    "record_study_session",
    "DoubtDraft",
    "GeneratedMaterialDraft",
    "GenerationPrompt",
    "build_doubt_prompt",
    "build_notes_prompt",
]
