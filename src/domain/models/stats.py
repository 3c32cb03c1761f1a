"""
Study statistics read-model.

Pure functions that summarize a user's saved sessions and twin progression
for the profile page: weekly activity buckets, totals, streak, per-subject
breakdown, level title, next milestone and achievements.

Every function takes ``today`` (a UTC calendar date) explicitly so results
are reproducible in tests.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from src.domain.models.progression import ProgressionState, total_accumulated_xp
from src.domain.models.study_session import StudySessionRecord

# (minimum level, title), highest first
LEVEL_TITLES: Tuple[Tuple[int, str], ...] = (
    (20, "Master Scholar"),
    (15, "Academic Explorer"),
    (10, "Knowledge Seeker"),
    (5, "Dedicated Learner"),
    (1, "Beginner Scholar"),
)

MILESTONES: Tuple[Tuple[int, str], ...] = (
    (5, "New character unlocked"),
    (10, "Special study background"),
    (15, "Achievement badge"),
    (20, "Master title"),
)


@dataclass(frozen=True)
class DailyStudyStats:
    date: date
    weekday_label: str
    total_minutes: int = 0
    sessions: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "weekday": self.weekday_label,
            "total_minutes": self.total_minutes,
            "sessions": self.sessions,
        }


@dataclass(frozen=True)
class StudyTotals:
    total_minutes: int = 0
    total_sessions: int = 0
    total_xp_earned: int = 0

    @property
    def hours_and_minutes(self) -> Tuple[int, int]:
        return divmod(self.total_minutes, 60)


@dataclass(frozen=True)
class SubjectStats:
    subject: str
    sessions: int
    total_minutes: int

    @property
    def average_minutes(self) -> int:
        return self.total_minutes // self.sessions if self.sessions else 0


@dataclass(frozen=True)
class Milestone:
    level: int
    reward: str


@dataclass(frozen=True)
class Achievement:
    title: str
    description: str
    earned: bool


@dataclass(frozen=True)
class TwinProfile:
    """Display-ready summary of a twin's progression."""

    level: int
    title: str
    current_xp: int
    xp_to_next_level: int
    xp_needed: int
    progress_percent: int
    total_xp: int
    character_type: str
    next_milestone: Optional[Milestone] = None
    achievements: List[Achievement] = field(default_factory=list)


def session_day(session: StudySessionRecord) -> date:
    """UTC calendar day a session was saved on."""
    created = session.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.astimezone(timezone.utc).date()


def utc_today(now: Optional[datetime] = None) -> date:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


# ============================================================================
# Session aggregates
# ============================================================================


def weekly_buckets(
    sessions: Iterable[StudySessionRecord],
    today: date,
    days: int = 7,
) -> List[DailyStudyStats]:
    """
    One bucket per calendar day for the ``days`` days ending ``today``.

    Oldest first; days without sessions are present with zeros.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    minutes: Dict[date, int] = defaultdict(int)
    counts: Dict[date, int] = defaultdict(int)

    for session in sessions:
        day = session_day(session)
        minutes[day] += session.duration_minutes
        counts[day] += 1

    return [
        DailyStudyStats(
            date=day,
            weekday_label=day.strftime("%a"),
            total_minutes=minutes.get(day, 0),
            sessions=counts.get(day, 0),
        )
        for day in window
    ]


def study_totals(sessions: Iterable[StudySessionRecord]) -> StudyTotals:
    total_minutes = 0
    total_sessions = 0
    total_xp = 0
    for session in sessions:
        total_minutes += session.duration_minutes
        total_sessions += 1
        total_xp += session.xp_earned
    return StudyTotals(
        total_minutes=total_minutes,
        total_sessions=total_sessions,
        total_xp_earned=total_xp,
    )


def study_streak(sessions: Iterable[StudySessionRecord], today: date) -> int:
    """
    Consecutive days with at least one session, counted back from today.

    A day without a session yet does not break the streak until it is
    over: when there is nothing today the count starts from yesterday.
    """
    days = {session_day(session) for session in sessions}

    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def subject_breakdown(sessions: Iterable[StudySessionRecord]) -> List[SubjectStats]:
    """Per-subject totals, most studied first."""
    minutes: Dict[str, int] = defaultdict(int)
    counts: Dict[str, int] = defaultdict(int)
    for session in sessions:
        label = session.subject_label
        minutes[label] += session.duration_minutes
        counts[label] += 1

    stats = [
        SubjectStats(subject=label, sessions=counts[label], total_minutes=minutes[label])
        for label in counts
    ]
    stats.sort(key=lambda s: (-s.total_minutes, s.subject))
    return stats


# ============================================================================
# Twin profile
# ============================================================================


def level_title(level: int) -> str:
    for min_level, title in LEVEL_TITLES:
        if level >= min_level:
            return title
    return LEVEL_TITLES[-1][1]


def next_milestone(level: int) -> Optional[Milestone]:
    for milestone_level, reward in MILESTONES:
        if milestone_level > level:
            return Milestone(level=milestone_level, reward=reward)
    return None


def progress_percent(state: ProgressionState) -> int:
    return min(state.current_xp * 100 // state.xp_to_next_level, 100)


def achievements(
    state: ProgressionState,
    totals: StudyTotals,
    streak: int,
    xp_per_level: Optional[int] = None,
) -> List[Achievement]:
    hours, _ = totals.hours_and_minutes
    lifetime_xp = total_accumulated_xp(state, xp_per_level)
    return [
        Achievement("First Timer", "Complete your first study session", totals.total_sessions > 0),
        Achievement("Dedicated Learner", "Study for 10 hours total", hours >= 10),
        Achievement("Streak Master", "7-day study streak", streak >= 7),
        Achievement("Level Up!", "Reach level 5", state.level >= 5),
        Achievement("Consistent Scholar", "Complete 50 sessions", totals.total_sessions >= 50),
        Achievement("XP Collector", "Earn 1000 XP total", lifetime_xp >= 1000),
    ]


def build_twin_profile(
    state: ProgressionState,
    character_type: str,
    totals: Optional[StudyTotals] = None,
    streak: int = 0,
    xp_per_level: Optional[int] = None,
) -> TwinProfile:
    return TwinProfile(
        level=state.level,
        title=level_title(state.level),
        current_xp=state.current_xp,
        xp_to_next_level=state.xp_to_next_level,
        xp_needed=state.xp_needed(),
        progress_percent=progress_percent(state),
        total_xp=total_accumulated_xp(state, xp_per_level),
        character_type=character_type,
        next_milestone=next_milestone(state.level),
        achievements=achievements(state, totals or StudyTotals(), streak, xp_per_level),
    )
