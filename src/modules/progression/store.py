"""
Progression Store contract.

Purpose
-------
Describe what the progression service needs from persistence, independent
of the backing technology. Production uses `SqlProgressionStore`; unit tests
use an in-memory implementation of the same protocol.

Contract
--------
- ``unit_of_work()`` opens one atomic unit. Everything done through the
  yielded handle commits together when the block exits normally and is
  discarded when it raises.
- ``update_progression_state_if_unchanged`` is a compare-and-set on the row
  version: it returns False, writing nothing, when the stored version is no
  longer ``expected_version``. A successful write bumps the version by one.
- ``create_progression_state`` is idempotent under races: when another
  writer created the row first, the existing row is returned.
- Driver or connection failures surface as `StoreUnavailableError`; other
  database errors propagate unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, AsyncContextManager, List, Optional, Protocol

from src.domain.models.progression import ProgressionState, is_valid_progression

if TYPE_CHECKING:
    from src.domain.models.study_aids import (
        DoubtDraft,
        DoubtRecord,
        GeneratedMaterialDraft,
        GeneratedMaterialRecord,
    )
    from src.domain.models.study_session import StudySessionDraft, StudySessionRecord


@dataclass(frozen=True)
class ProgressionSnapshot:
    """
    A progression row as read from the store.

    Values are kept raw so a row that violates the leveling invariant can
    still be loaded and repaired.
    """

    user_id: str
    level: int
    current_xp: int
    xp_to_next_level: int
    version: int
    character_type: str
    total_sessions: int = 0

    def is_valid(self, xp_per_level: Optional[int] = None) -> bool:
        return is_valid_progression(
            self.level, self.current_xp, self.xp_to_next_level, xp_per_level
        )

    @property
    def state(self) -> ProgressionState:
        return ProgressionState(
            level=self.level,
            current_xp=self.current_xp,
            xp_to_next_level=self.xp_to_next_level,
        )


class ProgressionUnitOfWork(Protocol):
    """
    Operations available inside one atomic unit.

    Covers every per-user record the engine keeps: the progression row, the
    study session log, saved materials and answered doubts. Lists are newest
    first.
    """

    async def get_progression_state(self, user_id: str) -> Optional[ProgressionSnapshot]: ...

    async def create_progression_state(
        self,
        user_id: str,
        defaults: ProgressionState,
    ) -> ProgressionSnapshot: ...

    async def update_progression_state_if_unchanged(
        self,
        user_id: str,
        expected_version: int,
        new_state: ProgressionState,
        sessions_increment: int = 0,
    ) -> bool: ...

    async def append_study_session(self, user_id: str, session: StudySessionDraft) -> str: ...

    async def list_study_sessions(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[StudySessionRecord]: ...

    async def append_generated_material(
        self,
        user_id: str,
        material: GeneratedMaterialDraft,
    ) -> str: ...

    async def count_generated_materials(self, user_id: str) -> int: ...

    async def list_generated_materials(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[GeneratedMaterialRecord]: ...

    async def append_doubt(self, user_id: str, doubt: DoubtDraft) -> str: ...

    async def count_doubts(self, user_id: str) -> int: ...

    async def list_doubts(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[DoubtRecord]: ...


class ProgressionStore(Protocol):
    """Factory for units of work against progression storage."""

    def unit_of_work(self) -> AsyncContextManager[ProgressionUnitOfWork]: ...


__all__ = [
    "ProgressionSnapshot",
    "ProgressionStore",
    "ProgressionUnitOfWork",
]
