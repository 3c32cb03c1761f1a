"""
Doubt Model
===========

A question a student asked, optionally with an image, and the answer they
received. Rows are written once the answer exists.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now
from src.database.models.enums import DoubtStatus


def _new_doubt_id() -> str:
    return str(uuid.uuid4())


class Doubt(Base):
    """A student question and its answer."""

    __tablename__ = "doubts"
    __table_args__ = (
        Index("ix_doubts_user_created", "user_id", "created_at"),
        CheckConstraint("status IN ('pending', 'answered')", name="status_valid"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_doubt_id)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    question: Mapped[str] = mapped_column(Text, nullable=False)

    answer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    subject: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    image_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Attached image as a data URL",
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=DoubtStatus.ANSWERED.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    def __repr__(self) -> str:
        return f"<Doubt(id={self.id!r}, user_id={self.user_id!r}, status={self.status})>"
