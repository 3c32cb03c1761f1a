"""
Study Stats Service
===================

Purpose
-------
Read-only overview of a user's study activity and twin progression for the
profile page: twin profile (title, milestone, achievements), totals,
streak, the last week's activity, subject breakdown, recent sessions and
how many notes and answered doubts the user has saved.

Never writes. A user with no progression row is shown the initial state,
and a corrupt row is shown as it will look once repaired on the next save.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from src.core.database.retry_policy import DatabaseRetryPolicy
from src.core.logging.logger import LogContext
from src.database.models.enums import CharacterType
from src.domain.models.progression import ProgressionState, normalize_state
from src.domain.models.stats import (
    DailyStudyStats,
    StudyTotals,
    SubjectStats,
    TwinProfile,
    build_twin_profile,
    study_streak,
    study_totals,
    subject_breakdown,
    utc_today,
    weekly_buckets,
)
from src.domain.models.study_session import StudySessionRecord
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.event.bus import EventBus
    from src.modules.progression.store import ProgressionSnapshot, ProgressionStore


@dataclass(frozen=True)
class StudyOverview:
    user_id: str
    profile: TwinProfile
    totals: StudyTotals
    streak: int
    total_notes: int = 0
    total_doubts: int = 0
    weekly: List[DailyStudyStats] = field(default_factory=list)
    subjects: List[SubjectStats] = field(default_factory=list)
    recent_sessions: List[StudySessionRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        hours, minutes = self.totals.hours_and_minutes
        return {
            "user_id": self.user_id,
            "profile": asdict(self.profile),
            "totals": {
                **asdict(self.totals),
                "hours": hours,
                "minutes": minutes,
            },
            "streak": self.streak,
            "total_notes": self.total_notes,
            "total_doubts": self.total_doubts,
            "weekly": [day.to_dict() for day in self.weekly],
            "subjects": [
                {**asdict(subject), "average_minutes": subject.average_minutes}
                for subject in self.subjects
            ],
            "recent_sessions": [session.to_dict() for session in self.recent_sessions],
        }


class StudyStatsService(BaseService):
    """
    Service for the study statistics read-model.

    Public Methods
    --------------
    - get_overview() -> Profile, totals, streak, weekly buckets, recent sessions,
      saved notes and doubts counts
    """

    def __init__(
        self,
        store: ProgressionStore,
        event_bus: EventBus,
        logger: Logger,
        config: Optional[Mapping[str, Any]] = None,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(event_bus, logger, config)
        self._store = store
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()
        self._xp_per_level: int = self.get_config("XP_PER_LEVEL", required=True)
        self._week_days: int = self.get_config("STATS_WEEK_DAYS", 7)
        self._recent_limit: int = self.get_config("STATS_RECENT_SESSIONS_LIMIT", 10)

    async def get_overview(self, user_id: str, now: Optional[datetime] = None) -> StudyOverview:
        """
        Build the profile overview for ``user_id``.

        Args:
            user_id: Owner of the twin
            now: Reference time (defaults to the current UTC time); days
                are UTC calendar days

        Raises:
            ValidationError: If user_id is malformed
            StoreUnavailableError: If the store cannot be reached
        """
        user_id = self.validate_user_id(user_id)
        today = utc_today(now)

        async def read() -> Tuple[Optional[ProgressionSnapshot], List[StudySessionRecord], int, int]:
            async with self._store.unit_of_work() as uow:
                snapshot = await uow.get_progression_state(user_id)
                sessions = await uow.list_study_sessions(user_id)
                notes = await uow.count_generated_materials(user_id)
                doubts = await uow.count_doubts(user_id)
            return snapshot, sessions, notes, doubts

        async with LogContext(user_id=user_id, operation="stats.get_overview"):
            snapshot, sessions, notes, doubts = await self._retry.execute(
                read,
                operation_name="stats.get_overview",
                context={"user_id": user_id},
            )

            state = self._display_state(snapshot)
            character = snapshot.character_type if snapshot else CharacterType.default().value
            totals = study_totals(sessions)
            streak = study_streak(sessions, today)

            overview = StudyOverview(
                user_id=user_id,
                profile=build_twin_profile(
                    state,
                    character,
                    totals=totals,
                    streak=streak,
                    xp_per_level=self._xp_per_level,
                ),
                totals=totals,
                streak=streak,
                weekly=weekly_buckets(sessions, today, self._week_days),
                subjects=subject_breakdown(sessions),
                recent_sessions=list(sessions[: self._recent_limit]),
                total_notes=notes,
                total_doubts=doubts,
            )

            self.log.debug(
                "Built study overview",
                extra={
                    "level": state.level,
                    "total_sessions": totals.total_sessions,
                    "streak": streak,
                },
            )
        return overview

    def _display_state(self, snapshot: Optional[ProgressionSnapshot]) -> ProgressionState:
        if snapshot is None:
            return ProgressionState.initial(self._xp_per_level)
        if snapshot.is_valid(self._xp_per_level):
            return snapshot.state
        return normalize_state(
            snapshot.level,
            snapshot.current_xp,
            snapshot.xp_to_next_level,
            self._xp_per_level,
        )
