"""
Progression Service
===================

Purpose
-------
Owns every write to a study twin's progression: loading (and lazily
creating) the row, folding XP in through the Leveling Calculator, recording
study sessions, and persisting the result with a version compare-and-set.

Domain
------
- ``load``: current progression, creating the default row on first use
- ``apply_xp``: add XP from any source and resolve level-ups
- ``record_session``: turn a stopped timer into a saved session and its XP,
  atomically with the progression update

Concurrency
-----------
Each save is one read-modify-write inside one unit of work. The write only
lands if the row version is still the one that was read; otherwise the
attempt raises `WriteConflictError` and the retry policy reruns the whole
attempt (reload, recompute, rewrite) after a jittered backoff. When the
attempt ceiling is reached the caller gets `StoreUnavailableError`.

Corrupt rows
------------
A loaded row that violates ``0 <= current_xp < xp_to_next_level`` (or whose
threshold does not match its level) is logged as `InvalidStateError` at
WARNING, normalized, and persisted as part of the same attempt. Callers
never see the error.

Events
------
Published only after the unit of work commits:
- ``progression.xp_applied``
- ``progression.leveled_up``
- ``study.session_recorded``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple, Union

from src.core.database.metrics import DatabaseMetrics
from src.core.database.retry_policy import DatabaseRetryPolicy
from src.core.logging.logger import LogContext
from src.database.models.enums import TimerMode
from src.domain.models.base import DomainEvent
from src.domain.models.progression import (
    LevelingResult,
    ProgressionState,
    apply_xp_delta,
    normalize_state,
)
from src.domain.models.study_session import StudySessionDraft, record_study_session
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    InvalidStateError,
    StoreUnavailableError,
    WriteConflictError,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.event.bus import EventBus
    from src.modules.progression.store import (
        ProgressionSnapshot,
        ProgressionStore,
        ProgressionUnitOfWork,
    )


@dataclass(frozen=True)
class ProgressionUpdate:
    """Result of a committed progression operation."""

    user_id: str
    result: LevelingResult
    version: int
    character_type: str
    total_sessions: int
    repaired: bool = False
    session_id: Optional[str] = None
    session: Optional[StudySessionDraft] = None

    @property
    def state(self) -> ProgressionState:
        return self.result.state

    @property
    def leveled_up(self) -> bool:
        return self.result.leveled_up

    @property
    def levels_gained(self) -> int:
        return self.result.levels_gained

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "user_id": self.user_id,
            **self.result.to_dict(),
            "version": self.version,
            "character_type": self.character_type,
            "total_sessions": self.total_sessions,
            "repaired": self.repaired,
        }
        if self.session is not None:
            data["session"] = {"id": self.session_id, **self.session.to_dict()}
        return data


class ProgressionService(BaseService):
    """
    Service for study twin progression.

    Dependencies
    ------------
    - ProgressionStore: Atomic units of work over progression storage
    - EventBus: Post-commit notifications
    - Logger: Structured logging
    - DatabaseRetryPolicy: Bounded retries for conflicting writes

    Public Methods
    --------------
    - load() -> Current progression, created on first use
    - apply_xp() -> Add XP and resolve level-ups
    - record_session() -> Save a study session and apply its XP
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
        self._xp_per_minute: int = self.get_config("XP_PER_STUDY_MINUTE", required=True)

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def load(self, user_id: str) -> ProgressionUpdate:
        """
        Return the user's progression, creating the default row if absent.

        A corrupt row is repaired and persisted before it is returned.

        Raises:
            ValidationError: If user_id is malformed
            StoreUnavailableError: If the store cannot be reached
        """
        user_id = self.validate_user_id(user_id)
        async with LogContext(user_id=user_id, operation="progression.load"):
            update = await self._run("load", user_id, xp_delta=0)
        return update

    async def apply_xp(self, user_id: str, xp_delta: int) -> ProgressionUpdate:
        """
        Add ``xp_delta`` to the user's progression.

        Args:
            user_id: Owner of the twin
            xp_delta: Non-negative XP amount

        Returns:
            ProgressionUpdate with the new state and level-up information

        Raises:
            ValidationError: If user_id or xp_delta is invalid
            StoreUnavailableError: If the store is unreachable or the retry
                ceiling was hit under contention

        Example:
            >>> update = await progression_service.apply_xp("u-1", 50)
            >>> update.state.level, update.leveled_up
            (2, True)
        """
        user_id = self.validate_user_id(user_id)
        xp_delta = self.validate_non_negative_int(xp_delta, "xp_delta")

        async with LogContext(user_id=user_id, operation="progression.apply_xp"):
            update = await self._run("apply_xp", user_id, xp_delta=xp_delta)
            await self.emit_events(self._events_for(update))
        return update

    async def record_session(
        self,
        user_id: str,
        elapsed_seconds: Union[int, float],
        timer_mode: Union[TimerMode, str],
        duration_seconds: Optional[Union[int, float]] = None,
        completed: bool = False,
        subject: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ProgressionUpdate:
        """
        Save a stopped timer as a study session and apply its XP.

        The session row and the progression update commit together or not
        at all. A session shorter than a minute is saved with 0 XP.

        Raises:
            EmptySessionError: If the timer recorded zero seconds (nothing
                is written)
            ValidationError: For malformed timer input
            StoreUnavailableError: If the save could not be completed
        """
        user_id = self.validate_user_id(user_id)
        draft = record_study_session(
            elapsed_seconds,
            timer_mode,
            duration_seconds=duration_seconds,
            completed=completed,
            subject=subject,
            notes=notes,
            xp_per_minute=self._xp_per_minute,
        )

        async with LogContext(user_id=user_id, operation="progression.record_session"):
            update = await self._run(
                "record_session", user_id, xp_delta=draft.xp_earned, draft=draft
            )
            await self.emit_events(self._events_for(update))
        return update

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _run(
        self,
        operation: str,
        user_id: str,
        xp_delta: int,
        draft: Optional[StudySessionDraft] = None,
    ) -> ProgressionUpdate:
        async def attempt() -> ProgressionUpdate:
            return await self._attempt(operation, user_id, xp_delta, draft)

        try:
            update = await self._retry.execute(
                attempt,
                operation_name=f"progression.{operation}",
                context={"user_id": user_id},
            )
        except WriteConflictError as exc:
            error = StoreUnavailableError(
                operation,
                "too many concurrent updates",
                attempts=self._retry.max_attempts,
            )
            self.log_error(operation, error, user_id=user_id)
            raise error from exc

        self.log_operation(
            operation,
            user_id=user_id,
            xp_delta=xp_delta,
            new_level=update.state.level,
            levels_gained=update.levels_gained,
            version=update.version,
        )
        return update

    async def _attempt(
        self,
        operation: str,
        user_id: str,
        xp_delta: int,
        draft: Optional[StudySessionDraft],
    ) -> ProgressionUpdate:
        """One reload-recompute-write cycle inside its own unit of work."""
        async with self._store.unit_of_work() as uow:
            snapshot = await self._load_or_create(uow, user_id)
            state, repaired = self._checked_state(snapshot)

            result = apply_xp_delta(state, xp_delta, self._xp_per_level)

            session_id: Optional[str] = None
            if draft is not None:
                session_id = await uow.append_study_session(user_id, draft)

            sessions_increment = 1 if draft is not None else 0
            changed = repaired or draft is not None or result.state != state
            version = snapshot.version

            if changed:
                written = await uow.update_progression_state_if_unchanged(
                    user_id,
                    snapshot.version,
                    result.state,
                    sessions_increment=sessions_increment,
                )
                if not written:
                    DatabaseMetrics.record_write_conflict(operation=operation)
                    raise WriteConflictError(user_id, snapshot.version)
                version = snapshot.version + 1

        return ProgressionUpdate(
            user_id=user_id,
            result=result,
            version=version,
            character_type=snapshot.character_type,
            total_sessions=snapshot.total_sessions + sessions_increment,
            repaired=repaired,
            session_id=session_id,
            session=draft,
        )

    async def _load_or_create(
        self,
        uow: ProgressionUnitOfWork,
        user_id: str,
    ) -> ProgressionSnapshot:
        snapshot = await uow.get_progression_state(user_id)
        if snapshot is None:
            snapshot = await uow.create_progression_state(
                user_id, ProgressionState.initial(self._xp_per_level)
            )
        return snapshot

    def _checked_state(self, snapshot: ProgressionSnapshot) -> Tuple[ProgressionState, bool]:
        """Return ``(state, repaired)``, normalizing a corrupt row."""
        if snapshot.is_valid(self._xp_per_level):
            return snapshot.state, False

        error = InvalidStateError(
            snapshot.user_id,
            snapshot.level,
            snapshot.current_xp,
            snapshot.xp_to_next_level,
        )
        repaired = normalize_state(
            snapshot.level,
            snapshot.current_xp,
            snapshot.xp_to_next_level,
            self._xp_per_level,
        )
        self.log.warning(
            f"Repairing progression state: {error.message}",
            extra={
                "error_code": error.error_code,
                "stored": {
                    "level": snapshot.level,
                    "current_xp": snapshot.current_xp,
                    "xp_to_next_level": snapshot.xp_to_next_level,
                },
                "repaired": repaired.to_dict(),
            },
        )
        return repaired, True

    @staticmethod
    def _events_for(update: ProgressionUpdate) -> List[DomainEvent]:
        events: List[DomainEvent] = []
        result = update.result

        if update.session is not None:
            events.append(
                DomainEvent(
                    "study.session_recorded",
                    {
                        "user_id": update.user_id,
                        "session_id": update.session_id,
                        "duration_minutes": update.session.duration_minutes,
                        "xp_earned": update.session.xp_earned,
                        "timer_mode": update.session.timer_mode.value,
                    },
                )
            )

        events.append(
            DomainEvent(
                "progression.xp_applied",
                {
                    "user_id": update.user_id,
                    "xp_delta": result.xp_delta,
                    "old_level": result.previous.level,
                    "new_level": result.state.level,
                    "current_xp": result.state.current_xp,
                },
            )
        )

        if result.leveled_up:
            events.append(
                DomainEvent(
                    "progression.leveled_up",
                    {
                        "user_id": update.user_id,
                        "old_level": result.previous.level,
                        "new_level": result.state.level,
                        "levels_gained": result.levels_gained,
                    },
                )
            )
        return events
