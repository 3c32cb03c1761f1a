"""
Session Recorder for study timers.

Purpose
-------
Turn raw timer state into a persist-ready study session and the XP reward
it grants. Pure: nothing here touches the store.

Business Rules
--------------
- Effective seconds are the configured duration when a countdown ran out on
  its own, otherwise the elapsed seconds (stopwatch, or a countdown the user
  stopped early).
- ``duration_minutes = floor(effective_seconds / 60)``; partial minutes are
  truncated, never rounded up.
- ``xp_earned = duration_minutes * XP_PER_STUDY_MINUTE`` (default 2), fixed
  when the session is recorded.
- Zero effective seconds is refused with `EmptySessionError`. A session
  shorter than a minute is accepted and earns 0 XP.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from src.core.config.config import Config
from src.database.models.enums import TimerMode
from src.domain.models.base import (
    DomainValidationError,
    clean_text,
    validate_non_negative,
    validate_positive,
)
from src.modules.shared.exceptions import EmptySessionError

XP_PER_STUDY_MINUTE: int = Config.XP_PER_STUDY_MINUTE

DEFAULT_SUBJECT = "General Study"
MAX_SUBJECT_LENGTH = 120
MAX_NOTES_LENGTH = 10_000

Seconds = Union[int, float]


@dataclass(frozen=True)
class StudySessionDraft:
    """A recorded session that has not been persisted yet."""

    timer_mode: TimerMode
    effective_seconds: int
    duration_minutes: int
    xp_earned: int
    target_duration_minutes: Optional[int] = None
    subject: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timer_mode": self.timer_mode.value,
            "duration_minutes": self.duration_minutes,
            "target_duration_minutes": self.target_duration_minutes,
            "subject": self.subject,
            "notes": self.notes,
            "xp_earned": self.xp_earned,
        }


@dataclass(frozen=True)
class StudySessionRecord:
    """A persisted session as read back from the store."""

    id: str
    user_id: str
    timer_mode: TimerMode
    duration_minutes: int
    xp_earned: int
    created_at: datetime
    target_duration_minutes: Optional[int] = None
    subject: Optional[str] = None
    notes: Optional[str] = None

    @property
    def subject_label(self) -> str:
        return self.subject or DEFAULT_SUBJECT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "timer_mode": self.timer_mode.value,
            "duration_minutes": self.duration_minutes,
            "target_duration_minutes": self.target_duration_minutes,
            "subject": self.subject,
            "notes": self.notes,
            "xp_earned": self.xp_earned,
            "created_at": self.created_at.isoformat(),
        }


def _whole_seconds(value: Seconds, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DomainValidationError(
            f"{field_name} must be a number of seconds, got {type(value).__name__}",
            field=field_name,
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise DomainValidationError(f"{field_name} must be finite", field=field_name)
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )
    return int(math.floor(value))


def _parse_timer_mode(timer_mode: Union[TimerMode, str]) -> TimerMode:
    try:
        return TimerMode(timer_mode)
    except ValueError:
        raise DomainValidationError(
            f"timer_mode must be one of {[m.value for m in TimerMode]}, got {timer_mode!r}",
            field="timer_mode",
        ) from None


def minutes_to_xp(duration_minutes: int, xp_per_minute: Optional[int] = None) -> int:
    validate_non_negative(duration_minutes, "duration_minutes")
    rate = XP_PER_STUDY_MINUTE if xp_per_minute is None else xp_per_minute
    validate_non_negative(rate, "xp_per_minute")
    return duration_minutes * rate


def record_study_session(
    elapsed_seconds: Seconds,
    timer_mode: Union[TimerMode, str],
    duration_seconds: Optional[Seconds] = None,
    completed: bool = False,
    subject: Optional[str] = None,
    notes: Optional[str] = None,
    xp_per_minute: Optional[int] = None,
) -> StudySessionDraft:
    """
    Build the session for a stopped timer.

    Parameters
    ----------
    elapsed_seconds : int | float
        Seconds the timer actually ran. Fractions are truncated.
    timer_mode : TimerMode | str
        ``stopwatch`` or ``countdown``.
    duration_seconds : int | float, optional
        Configured countdown length. Required for countdowns.
    completed : bool
        True when the countdown reached zero on its own.

    Raises
    ------
    EmptySessionError
        If the effective duration is zero seconds.
    DomainValidationError
        For negative times, unknown timer modes, or a countdown without a
        positive configured duration.
    """
    mode = _parse_timer_mode(timer_mode)
    elapsed = _whole_seconds(elapsed_seconds, "elapsed_seconds")

    target_minutes: Optional[int] = None
    if mode is TimerMode.COUNTDOWN:
        if duration_seconds is None:
            raise DomainValidationError(
                "duration_seconds is required for countdown sessions",
                field="duration_seconds",
            )
        configured = _whole_seconds(duration_seconds, "duration_seconds")
        validate_positive(configured, "duration_seconds")
        target_minutes = configured // 60
        effective = configured if completed else elapsed
    else:
        effective = elapsed

    if effective == 0:
        raise EmptySessionError(mode.value)

    duration_minutes = effective // 60

    return StudySessionDraft(
        timer_mode=mode,
        effective_seconds=effective,
        duration_minutes=duration_minutes,
        xp_earned=minutes_to_xp(duration_minutes, xp_per_minute),
        target_duration_minutes=target_minutes,
        subject=clean_text(subject, "subject", MAX_SUBJECT_LENGTH),
        notes=clean_text(notes, "notes", MAX_NOTES_LENGTH),
    )


__all__ = [
    "DEFAULT_SUBJECT",
    "XP_PER_STUDY_MINUTE",
    "StudySessionDraft",
    "StudySessionRecord",
    "minutes_to_xp",
    "record_study_session",
]
