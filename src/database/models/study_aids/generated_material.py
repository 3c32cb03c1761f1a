"""
GeneratedMaterial Model
=======================

Study notes a user generated and chose to keep. Append-only; the dashboard
reports how many a user has saved.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now
from src.database.models.enums import MaterialType


def _new_material_id() -> str:
    return str(uuid.uuid4())


class GeneratedMaterial(Base):
    """A saved piece of generated study material."""

    __tablename__ = "generated_materials"
    __table_args__ = (
        Index("ix_generated_materials_user_created", "user_id", "created_at"),
        CheckConstraint("material_type IN ('notes')", name="material_type_valid"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_material_id)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    subject: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    material_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=MaterialType.NOTES.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    def __repr__(self) -> str:
        return (
            f"<GeneratedMaterial(id={self.id!r}, user_id={self.user_id!r}, "
            f"title={self.title!r}, type={self.material_type})>"
        )
