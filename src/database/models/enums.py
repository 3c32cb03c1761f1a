"""
Database Model Enums
====================

Type-safe constants for categorical columns. Declarative schema helpers,
referenced by the domain and service layers.
"""

from __future__ import annotations

import enum


class TimerMode(str, enum.Enum):
    """
    How a study session was timed.

    A stopwatch counts up until the user stops it; a countdown runs down
    from a configured duration and may finish on its own.
    """

    STOPWATCH = "stopwatch"
    COUNTDOWN = "countdown"


class CharacterType(str, enum.Enum):
    """Avatar shown for a study twin."""

    OWL = "owl"
    FOX = "fox"
    PANDA = "panda"
    CAT = "cat"
    ROBOT = "robot"
    WIZARD = "wizard"
    ASTRONAUT = "astronaut"
    DRAGON = "dragon"

    @classmethod
    def default(cls) -> "CharacterType":
        return cls.OWL


class MaterialType(str, enum.Enum):
    """Kind of generated study material saved to a user's library."""

    NOTES = "notes"


class DetailLevel(str, enum.Enum):
    """How thorough generated notes should be."""

    BRIEF = "brief"
    MEDIUM = "medium"
    DETAILED = "detailed"

    @classmethod
    def default(cls) -> "DetailLevel":
        return cls.MEDIUM


class DoubtStatus(str, enum.Enum):
    """Lifecycle of a student question."""

    PENDING = "pending"
    ANSWERED = "answered"
