"""
Leveling Calculator for study twin progression.

Purpose
-------
Fold an XP delta into a twin's progression state, resolving zero, one or
many level-ups in a single pass. This is the only place the leveling rule
lives; every XP source (saved study sessions today, anything else later)
goes through `apply_xp_delta`.

Business Rules
--------------
- The threshold for a level is ``level * XP_PER_LEVEL`` (default 100).
- ``total = current_xp + xp_delta``; while ``total >= xp_to_next_level`` the
  threshold is subtracted, the level increments, and the threshold is
  recomputed for the *new* level before testing again.
- At rest ``0 <= current_xp < xp_to_next_level``.
- Integers only; the threshold grows linearly.

Usage Example
-------------
>>> state = ProgressionState(level=1, current_xp=90, xp_to_next_level=100)
>>> result = apply_xp_delta(state, 50)
>>> (result.state.level, result.state.current_xp, result.state.xp_to_next_level)
(2, 40, 200)
>>> result.levels_gained
1
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.core.config.config import Config
from src.domain.models.base import (
    DomainValidationError,
    validate_integer,
    validate_non_negative,
    validate_positive,
)

XP_PER_LEVEL: int = Config.XP_PER_LEVEL


def xp_threshold_for_level(level: int, xp_per_level: Optional[int] = None) -> int:
    """XP needed to advance past ``level``."""
    validate_positive(level, "level")
    per_level = XP_PER_LEVEL if xp_per_level is None else xp_per_level
    validate_positive(per_level, "xp_per_level")
    return level * per_level


@dataclass(frozen=True)
class ProgressionState:
    """
    Level and XP of a study twin.

    Construction only checks the field ranges. Whether the state is settled
    (``current_xp < xp_to_next_level``) is reported by `is_settled`, so a
    corrupted row can still be represented and repaired.
    """

    level: int = 1
    current_xp: int = 0
    xp_to_next_level: int = 100

    def __post_init__(self) -> None:
        validate_positive(self.level, "level")
        validate_non_negative(self.current_xp, "current_xp")
        validate_positive(self.xp_to_next_level, "xp_to_next_level")

    @classmethod
    def initial(cls, xp_per_level: Optional[int] = None) -> "ProgressionState":
        return cls(level=1, current_xp=0, xp_to_next_level=xp_threshold_for_level(1, xp_per_level))

    @property
    def is_settled(self) -> bool:
        return self.current_xp < self.xp_to_next_level

    def xp_needed(self) -> int:
        return max(self.xp_to_next_level - self.current_xp, 0)

    def to_dict(self) -> Dict[str, int]:
        return {
            "level": self.level,
            "current_xp": self.current_xp,
            "xp_to_next_level": self.xp_to_next_level,
        }


@dataclass(frozen=True)
class LevelingResult:
    """Outcome of folding one XP delta into a state."""

    state: ProgressionState
    previous: ProgressionState
    xp_delta: int

    @property
    def levels_gained(self) -> int:
        return self.state.level - self.previous.level

    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.state.to_dict(),
            "xp_delta": self.xp_delta,
            "leveled_up": self.leveled_up,
            "levels_gained": self.levels_gained,
        }


def apply_xp_delta(
    state: ProgressionState,
    xp_delta: int,
    xp_per_level: Optional[int] = None,
) -> LevelingResult:
    """
    Fold ``xp_delta`` into ``state``.

    The first comparison uses the threshold stored on ``state``; every
    threshold after a level-up is recomputed from the new level.

    Raises
    ------
    DomainValidationError
        If ``xp_delta`` is negative or not an integer.
    """
    validate_non_negative(xp_delta, "xp_delta")

    level = state.level
    total = state.current_xp + xp_delta
    threshold = state.xp_to_next_level

    while total >= threshold:
        total -= threshold
        level += 1
        threshold = xp_threshold_for_level(level, xp_per_level)

    if level == state.level and total == state.current_xp:
        new_state = state
    else:
        new_state = ProgressionState(level=level, current_xp=total, xp_to_next_level=threshold)

    return LevelingResult(state=new_state, previous=state, xp_delta=xp_delta)


# ============================================================================
# Repair of persisted state
# ============================================================================


def is_valid_progression(
    level: Any,
    current_xp: Any,
    xp_to_next_level: Any,
    xp_per_level: Optional[int] = None,
) -> bool:
    """
    Check raw persisted values against the at-rest invariant.

    Valid means ``level >= 1``, ``0 <= current_xp < xp_to_next_level`` and
    the threshold matches the level.
    """
    for value in (level, current_xp, xp_to_next_level):
        if isinstance(value, bool) or not isinstance(value, int):
            return False
    if level < 1 or current_xp < 0 or xp_to_next_level <= 0:
        return False
    if current_xp >= xp_to_next_level:
        return False
    return xp_to_next_level == xp_threshold_for_level(level, xp_per_level)


def normalize_state(
    level: int,
    current_xp: int,
    xp_to_next_level: int,
    xp_per_level: Optional[int] = None,
) -> ProgressionState:
    """
    Repair persisted values that violate the invariant.

    Out-of-range fields are clamped (level to 1, XP to 0, a non-positive
    threshold to the level's threshold). Overflowed XP is then resolved by
    running the calculator with a zero delta against the stored threshold,
    and the threshold is finally realigned with the resulting level.
    """
    for name, value in (
        ("level", level),
        ("current_xp", current_xp),
        ("xp_to_next_level", xp_to_next_level),
    ):
        validate_integer(value, name)

    level = max(level, 1)
    current_xp = max(current_xp, 0)
    if xp_to_next_level <= 0:
        xp_to_next_level = xp_threshold_for_level(level, xp_per_level)

    settled = apply_xp_delta(
        ProgressionState(level=level, current_xp=current_xp, xp_to_next_level=xp_to_next_level),
        0,
        xp_per_level,
    ).state

    aligned = ProgressionState(
        level=settled.level,
        current_xp=settled.current_xp,
        xp_to_next_level=xp_threshold_for_level(settled.level, xp_per_level),
    )
    return apply_xp_delta(aligned, 0, xp_per_level).state


def total_accumulated_xp(state: ProgressionState, xp_per_level: Optional[int] = None) -> int:
    """
    Lifetime XP represented by ``state``.

    Sum of every threshold crossed to reach ``state.level`` plus the XP
    banked toward the next one.
    """
    per_level = XP_PER_LEVEL if xp_per_level is None else xp_per_level
    completed_levels = state.level - 1
    return per_level * completed_levels * state.level // 2 + state.current_xp


__all__ = [
    "XP_PER_LEVEL",
    "DomainValidationError",
    "ProgressionState",
    "LevelingResult",
    "apply_xp_delta",
    "is_valid_progression",
    "normalize_state",
    "total_accumulated_xp",
    "xp_threshold_for_level",
]
