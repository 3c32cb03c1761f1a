"""
Unit Tests for the Study Statistics Read-Model
==============================================

Test Coverage
-------------
- Weekly activity buckets
- Totals and subject breakdown
- Streak counting across UTC days
- Level titles, milestones and achievements
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from src.database.models.enums import TimerMode
from src.domain.models.progression import ProgressionState
from src.domain.models.stats import (
    StudyTotals,
    build_twin_profile,
    level_title,
    next_milestone,
    progress_percent,
    study_streak,
    study_totals,
    subject_breakdown,
    utc_today,
    weekly_buckets,
)
from src.domain.models.study_session import StudySessionRecord

TODAY = date(2024, 5, 15)  # a Wednesday


def _session(day: date, minutes: int, subject=None, hour: int = 12) -> StudySessionRecord:
    return StudySessionRecord(
        id=f"{day.isoformat()}-{hour}-{minutes}",
        user_id="user-1",
        timer_mode=TimerMode.STOPWATCH,
        duration_minutes=minutes,
        xp_earned=minutes * 2,
        created_at=datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc),
        subject=subject,
    )


@pytest.mark.unit
@pytest.mark.domain
class TestWeeklyBuckets:
    def test_seven_days_oldest_first_with_empty_days(self):
        # Arrange
        sessions = [
            _session(TODAY, 30),
            _session(TODAY, 15, hour=18),
            _session(TODAY - timedelta(days=2), 45),
            _session(TODAY - timedelta(days=9), 60),  # outside the window
        ]

        # Act
        buckets = weekly_buckets(sessions, TODAY)

        # Assert
        assert [b.date for b in buckets] == [TODAY - timedelta(days=n) for n in range(6, -1, -1)]
        assert buckets[-1].total_minutes == 45
        assert buckets[-1].sessions == 2
        assert buckets[-3].total_minutes == 45
        assert sum(b.total_minutes for b in buckets) == 90
        assert buckets[-1].weekday_label == "Wed"

    def test_rejects_empty_window(self):
        with pytest.raises(ValueError):
            weekly_buckets([], TODAY, days=0)

    def test_bucket_uses_utc_day(self):
        # 23:30 at UTC-05:00 is 04:30 the next day in UTC
        eastern = timezone(timedelta(hours=-5))
        late = StudySessionRecord(
            id="late",
            user_id="user-1",
            timer_mode=TimerMode.STOPWATCH,
            duration_minutes=20,
            xp_earned=40,
            created_at=datetime(2024, 5, 14, 23, 30, tzinfo=eastern),
        )

        buckets = weekly_buckets([late], TODAY)

        assert buckets[-1].total_minutes == 20

    def test_to_dict(self):
        bucket = weekly_buckets([_session(TODAY, 30)], TODAY, days=1)[0]

        assert bucket.to_dict() == {
            "date": "2024-05-15",
            "weekday": "Wed",
            "total_minutes": 30,
            "sessions": 1,
        }


@pytest.mark.unit
@pytest.mark.domain
class TestTotalsAndSubjects:
    def test_totals(self):
        totals = study_totals([_session(TODAY, 30), _session(TODAY, 95)])

        assert totals == StudyTotals(total_minutes=125, total_sessions=2, total_xp_earned=250)
        assert totals.hours_and_minutes == (2, 5)

    def test_subject_breakdown_groups_blank_as_general(self):
        # Arrange
        sessions = [
            _session(TODAY, 30, "Math"),
            _session(TODAY, 20, "Math", hour=13),
            _session(TODAY, 90, "History"),
            _session(TODAY, 10, None),
        ]

        # Act
        breakdown = subject_breakdown(sessions)

        # Assert
        assert [s.subject for s in breakdown] == ["History", "Math", "General Study"]
        math = breakdown[1]
        assert (math.sessions, math.total_minutes, math.average_minutes) == (2, 50, 25)


@pytest.mark.unit
@pytest.mark.domain
class TestStreak:
    def test_no_sessions(self):
        assert study_streak([], TODAY) == 0

    def test_consecutive_days_ending_today(self):
        sessions = [_session(TODAY - timedelta(days=n), 10) for n in range(4)]

        assert study_streak(sessions, TODAY) == 4

    def test_streak_survives_until_today_is_over(self):
        sessions = [_session(TODAY - timedelta(days=n), 10) for n in range(1, 4)]

        assert study_streak(sessions, TODAY) == 3

    def test_gap_breaks_streak(self):
        sessions = [
            _session(TODAY, 10),
            _session(TODAY - timedelta(days=1), 10),
            _session(TODAY - timedelta(days=3), 10),
        ]

        assert study_streak(sessions, TODAY) == 2

    def test_streak_broken_two_days_ago(self):
        assert study_streak([_session(TODAY - timedelta(days=2), 10)], TODAY) == 0

    def test_utc_today_from_aware_time(self):
        moment = datetime(2024, 5, 15, 22, 0, tzinfo=timezone(timedelta(hours=-5)))

        assert utc_today(moment) == date(2024, 5, 16)


@pytest.mark.unit
@pytest.mark.domain
class TestTwinProfile:
    @pytest.mark.parametrize(
        "level, title",
        [
            (1, "Beginner Scholar"),
            (4, "Beginner Scholar"),
            (5, "Dedicated Learner"),
            (10, "Knowledge Seeker"),
            (15, "Academic Explorer"),
            (20, "Master Scholar"),
            (42, "Master Scholar"),
        ],
    )
    def test_level_titles(self, level, title):
        assert level_title(level) == title

    def test_next_milestone_is_strictly_above(self):
        assert next_milestone(1).level == 5
        assert next_milestone(5).level == 10
        assert next_milestone(19).reward == "Master title"
        assert next_milestone(20) is None

    def test_progress_percent(self):
        assert progress_percent(ProgressionState(level=2, current_xp=50, xp_to_next_level=200)) == 25

    def test_profile_for_new_twin(self):
        # Arrange & Act
        profile = build_twin_profile(ProgressionState.initial(), "owl")

        # Assert
        assert profile.title == "Beginner Scholar"
        assert profile.xp_needed == 100
        assert profile.progress_percent == 0
        assert profile.total_xp == 0
        assert profile.next_milestone.level == 5
        assert not any(a.earned for a in profile.achievements)

    def test_achievements(self):
        # Arrange
        state = ProgressionState(level=5, current_xp=0, xp_to_next_level=500)
        totals = StudyTotals(total_minutes=600, total_sessions=12, total_xp_earned=1200)

        # Act
        profile = build_twin_profile(state, "fox", totals=totals, streak=7)

        # Assert
        earned = {a.title for a in profile.achievements if a.earned}
        assert earned == {
            "First Timer",
            "Dedicated Learner",
            "Streak Master",
            "Level Up!",
            "XP Collector",
        }
        assert profile.total_xp == 1000
        assert profile.character_type == "fox"
