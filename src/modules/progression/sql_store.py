"""
SQLAlchemy-backed Progression Store.

Purpose
-------
Implements the `ProgressionStore` protocol on top of `DatabaseService`.
Each unit of work is one database transaction; progression writes use a
version compare-and-set so no update is ever lost to a concurrent save.

Design Notes
------------
- Conditional write:
  ``UPDATE study_twin SET ..., version = version + 1
  WHERE user_id = :user_id AND version = :expected``; zero matched rows
  means another writer got there first.
- Default-row creation runs inside a SAVEPOINT. A unique violation on
  ``user_id`` rolls back only the savepoint and the winner's row is read.
- Driver failures (connection refused, dropped connection, pool timeout,
  invalidated connection) are raised to callers as `StoreUnavailableError`.
  The enclosing transaction has already been rolled back at that point.
  Constraint and data errors are not retried and propagate as-is.
- Saved materials and doubts are append-only and share the same unit of
  work, so the stats overview reads them in one transaction.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, AsyncGenerator, List, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models.enums import CharacterType, DoubtStatus, MaterialType, TimerMode
from src.database.models.progression import StudySession, StudyTwin
from src.database.models.study_aids import Doubt, GeneratedMaterial
from src.domain.models.study_aids import DoubtRecord, GeneratedMaterialRecord
from src.domain.models.study_session import StudySessionRecord
from src.modules.progression.store import ProgressionSnapshot
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.exceptions import StoreUnavailableError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from src.domain.models.progression import ProgressionState
    from src.domain.models.study_aids import DoubtDraft, GeneratedMaterialDraft
    from src.domain.models.study_session import StudySessionDraft

logger = get_logger(__name__)

# Connection-level failures only. Other DBAPIError subclasses (IntegrityError,
# DataError, ProgrammingError) are not transient and propagate unchanged.
_CONNECTION_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, OSError)


def _unavailable(exc: BaseException) -> StoreUnavailableError:
    logger.debug(
        "Progression store driver failure",
        extra={"error_type": type(exc).__name__},
    )
    return StoreUnavailableError(
        "progression_store",
        f"{type(exc).__name__} from database driver",
    )


# ============================================================================
# Repositories
# ============================================================================


class StudyTwinRepository(BaseRepository[StudyTwin]):
    """Repository for StudyTwin rows."""

    async def find_by_user(self, session: AsyncSession, user_id: str) -> Optional[StudyTwin]:
        return await self.find_one_where(session, StudyTwin.user_id == user_id)

    async def compare_and_set(
        self,
        session: AsyncSession,
        user_id: str,
        expected_version: int,
        new_state: ProgressionState,
        sessions_increment: int = 0,
    ) -> bool:
        values = {
            "level": new_state.level,
            "current_xp": new_state.current_xp,
            "xp_to_next_level": new_state.xp_to_next_level,
            "version": StudyTwin.version + 1,
            "updated_at": utc_now(),
        }
        if sessions_increment:
            values["total_sessions"] = StudyTwin.total_sessions + sessions_increment

        matched = await self.update_where(
            session,
            StudyTwin.user_id == user_id,
            StudyTwin.version == expected_version,
            values=values,
        )
        return matched == 1


class StudySessionRepository(BaseRepository[StudySession]):
    """Repository for the append-only study session log."""

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[StudySession]:
        conditions = [StudySession.user_id == user_id]
        if since is not None:
            conditions.append(StudySession.created_at >= since)
        return await self.find_many_where(
            session,
            *conditions,
            order_by=(StudySession.created_at.desc(), StudySession.id.desc()),
            limit=limit,
        )


class GeneratedMaterialRepository(BaseRepository[GeneratedMaterial]):
    """Repository for saved study materials."""

    async def count_for_user(self, session: AsyncSession, user_id: str) -> int:
        return await self.count(session, GeneratedMaterial.user_id == user_id)

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[GeneratedMaterial]:
        return await self.find_many_where(
            session,
            GeneratedMaterial.user_id == user_id,
            order_by=(GeneratedMaterial.created_at.desc(), GeneratedMaterial.id.desc()),
            limit=limit,
        )


class DoubtRepository(BaseRepository[Doubt]):
    """Repository for answered doubts."""

    async def count_for_user(self, session: AsyncSession, user_id: str) -> int:
        return await self.count(session, Doubt.user_id == user_id)

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[Doubt]:
        return await self.find_many_where(
            session,
            Doubt.user_id == user_id,
            order_by=(Doubt.created_at.desc(), Doubt.id.desc()),
            limit=limit,
        )


# ============================================================================
# Unit of Work
# ============================================================================


def _to_snapshot(twin: StudyTwin) -> ProgressionSnapshot:
    return ProgressionSnapshot(
        user_id=twin.user_id,
        level=twin.level,
        current_xp=twin.current_xp,
        xp_to_next_level=twin.xp_to_next_level,
        version=twin.version,
        character_type=twin.character_type,
        total_sessions=twin.total_sessions,
    )


def _to_record(row: StudySession) -> StudySessionRecord:
    return StudySessionRecord(
        id=row.id,
        user_id=row.user_id,
        timer_mode=TimerMode(row.timer_mode),
        duration_minutes=row.duration_minutes,
        xp_earned=row.xp_earned,
        created_at=row.created_at,
        target_duration_minutes=row.target_duration_minutes,
        subject=row.subject,
        notes=row.notes,
    )


def _to_material(row: GeneratedMaterial) -> GeneratedMaterialRecord:
    return GeneratedMaterialRecord(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        content=row.content,
        material_type=MaterialType(row.material_type),
        created_at=row.created_at,
        subject=row.subject,
    )


def _to_doubt(row: Doubt) -> DoubtRecord:
    return DoubtRecord(
        id=row.id,
        user_id=row.user_id,
        question=row.question,
        answer=row.answer,
        status=DoubtStatus(row.status),
        created_at=row.created_at,
        subject=row.subject,
        image_url=row.image_url,
    )


class SqlProgressionUnitOfWork:
    """Per-user study data operations bound to one open transaction."""

    def __init__(
        self,
        session: AsyncSession,
        twins: StudyTwinRepository,
        sessions: StudySessionRepository,
        materials: GeneratedMaterialRepository,
        doubts: DoubtRepository,
    ) -> None:
        self._session = session
        self._twins = twins
        self._sessions = sessions
        self._materials = materials
        self._doubts = doubts

    async def get_progression_state(self, user_id: str) -> Optional[ProgressionSnapshot]:
        twin = await self._twins.find_by_user(self._session, user_id)
        return _to_snapshot(twin) if twin is not None else None

    async def create_progression_state(
        self,
        user_id: str,
        defaults: ProgressionState,
    ) -> ProgressionSnapshot:
        """
        Insert the default row, or return the row a concurrent writer created.
        """
        twin = StudyTwin(
            user_id=user_id,
            version=1,
            level=defaults.level,
            current_xp=defaults.current_xp,
            xp_to_next_level=defaults.xp_to_next_level,
            character_type=CharacterType.default().value,
            total_sessions=0,
        )
        try:
            async with self._session.begin_nested():
                self._twins.add(self._session, twin)
                await self._twins.flush(self._session)
        except IntegrityError:
            logger.debug(
                "Progression row created concurrently, reading winner",
                extra={"user_id": user_id},
            )
            existing = await self.get_progression_state(user_id)
            if existing is None:
                raise
            return existing

        logger.info("Created progression row", extra={"user_id": user_id})
        return _to_snapshot(twin)

    async def update_progression_state_if_unchanged(
        self,
        user_id: str,
        expected_version: int,
        new_state: ProgressionState,
        sessions_increment: int = 0,
    ) -> bool:
        return await self._twins.compare_and_set(
            self._session, user_id, expected_version, new_state, sessions_increment
        )

    async def append_study_session(self, user_id: str, session: StudySessionDraft) -> str:
        row = StudySession(
            user_id=user_id,
            duration_minutes=session.duration_minutes,
            timer_mode=session.timer_mode.value,
            target_duration_minutes=session.target_duration_minutes,
            subject=session.subject,
            notes=session.notes,
            xp_earned=session.xp_earned,
            created_at=utc_now(),
        )
        self._sessions.add(self._session, row)
        await self._sessions.flush(self._session)
        return row.id

    async def list_study_sessions(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[StudySessionRecord]:
        rows = await self._sessions.list_for_user(self._session, user_id, since, limit)
        return [_to_record(row) for row in rows]

    async def append_generated_material(
        self,
        user_id: str,
        material: GeneratedMaterialDraft,
    ) -> str:
        row = GeneratedMaterial(
            user_id=user_id,
            title=material.title,
            subject=material.subject,
            content=material.content,
            material_type=material.material_type.value,
            created_at=utc_now(),
        )
        self._materials.add(self._session, row)
        await self._materials.flush(self._session)
        return row.id

    async def count_generated_materials(self, user_id: str) -> int:
        return await self._materials.count_for_user(self._session, user_id)

    async def list_generated_materials(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[GeneratedMaterialRecord]:
        rows = await self._materials.list_for_user(self._session, user_id, limit)
        return [_to_material(row) for row in rows]

    async def append_doubt(self, user_id: str, doubt: DoubtDraft) -> str:
        row = Doubt(
            user_id=user_id,
            question=doubt.question,
            answer=doubt.answer,
            subject=doubt.subject,
            image_url=doubt.image_url,
            status=doubt.status.value,
            created_at=utc_now(),
        )
        self._doubts.add(self._session, row)
        await self._doubts.flush(self._session)
        return row.id

    async def count_doubts(self, user_id: str) -> int:
        return await self._doubts.count_for_user(self._session, user_id)

    async def list_doubts(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[DoubtRecord]:
        rows = await self._doubts.list_for_user(self._session, user_id, limit)
        return [_to_doubt(row) for row in rows]


# ============================================================================
# Store
# ============================================================================


class SqlProgressionStore:
    """
    Production `ProgressionStore`.

    Requires `DatabaseService.initialize()` to have been called.
    """

    def __init__(self) -> None:
        self._twins = StudyTwinRepository(
            model_class=StudyTwin,
            logger=get_logger(f"{__name__}.StudyTwinRepository"),
        )
        self._sessions = StudySessionRepository(
            model_class=StudySession,
            logger=get_logger(f"{__name__}.StudySessionRepository"),
        )
        self._materials = GeneratedMaterialRepository(
            model_class=GeneratedMaterial,
            logger=get_logger(f"{__name__}.GeneratedMaterialRepository"),
        )
        self._doubts = DoubtRepository(
            model_class=Doubt,
            logger=get_logger(f"{__name__}.DoubtRepository"),
        )

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncGenerator[SqlProgressionUnitOfWork, None]:
        try:
            async with DatabaseService.get_transaction() as session:
                yield SqlProgressionUnitOfWork(
                    session, self._twins, self._sessions, self._materials, self._doubts
                )
        except _CONNECTION_ERRORS as exc:
            raise _unavailable(exc) from exc
        except DBAPIError as exc:
            if not exc.connection_invalidated:
                raise
            raise _unavailable(exc) from exc


__all__ = [
    "SqlProgressionStore",
    "SqlProgressionUnitOfWork",
    "DoubtRepository",
    "GeneratedMaterialRepository",
    "StudySessionRepository",
    "StudyTwinRepository",
]
