"""
StudyTwin Model
===============

One row per user holding the twin's level, XP toward the next level and
avatar. Schema only; leveling rules live in ``src.domain.models.progression``.

Writes go through a compare-and-swap on ``version``:

    UPDATE study_twin SET ..., version = version + 1
    WHERE user_id = :user_id AND version = :expected_version
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin
from src.database.models.enums import CharacterType


class StudyTwin(Base, IdMixin, TimestampMixin):
    """
    Persisted progression state for a single user.

    Invariant at rest: ``0 <= current_xp < xp_to_next_level``.
    """

    __tablename__ = "study_twin"
    __table_args__ = (
        CheckConstraint("level >= 1", name="level_positive"),
        CheckConstraint("current_xp >= 0", name="current_xp_non_negative"),
        CheckConstraint("xp_to_next_level > 0", name="threshold_positive"),
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        doc="Owner identity from the auth provider",
    )

    version: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        doc="Optimistic locking version for concurrent updates",
    )

    # ========================================================================
    # LEVEL & EXPERIENCE
    # ========================================================================

    level: Mapped[int] = mapped_column(nullable=False, default=1, index=True)

    current_xp: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
        doc="XP accumulated toward the next level",
    )

    xp_to_next_level: Mapped[int] = mapped_column(
        nullable=False,
        default=100,
        doc="XP required to reach the next level (level * XP_PER_LEVEL)",
    )

    # ========================================================================
    # PROFILE
    # ========================================================================

    character_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=CharacterType.OWL.value,
    )

    total_sessions: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
        doc="Number of study sessions recorded for this user",
    )

    def __repr__(self) -> str:
        return (
            f"<StudyTwin(user_id={self.user_id!r}, level={self.level}, "
            f"current_xp={self.current_xp}/{self.xp_to_next_level}, v{self.version})>"
        )
