"""
StudySession Model
==================

Append-only log of completed study sessions. ``xp_earned`` is fixed when the
row is written and is folded into the owner's StudyTwin in the same
transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now


def _new_session_id() -> str:
    return str(uuid.uuid4())


class StudySession(Base):
    """A single saved study session."""

    __tablename__ = "study_sessions"
    __table_args__ = (
        Index("ix_study_sessions_user_created", "user_id", "created_at"),
        CheckConstraint("duration_minutes >= 0", name="duration_non_negative"),
        CheckConstraint("xp_earned >= 0", name="xp_earned_non_negative"),
        CheckConstraint(
            "timer_mode IN ('stopwatch', 'countdown')", name="timer_mode_valid"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_session_id)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    duration_minutes: Mapped[int] = mapped_column(nullable=False)

    timer_mode: Mapped[str] = mapped_column(String(16), nullable=False)

    target_duration_minutes: Mapped[Optional[int]] = mapped_column(
        nullable=True,
        doc="Configured countdown length; NULL for stopwatch sessions",
    )

    subject: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    xp_earned: Mapped[int] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<StudySession(id={self.id!r}, user_id={self.user_id!r}, "
            f"{self.duration_minutes}m {self.timer_mode}, xp={self.xp_earned})>"
        )
