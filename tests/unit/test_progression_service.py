"""
Unit Tests for ProgressionService
=================================

Purpose
-------
Exercise load / apply_xp / record_session against the in-memory store,
including concurrent saves, self-healing of corrupt rows and failure
atomicity.

Testing Strategy
----------------
- In-memory ProgressionStore with failure knobs (tests/fakes.py)
- Real EventBus, recording listener
- AAA pattern (Arrange, Act, Assert)
"""

import asyncio
import logging

import pytest

from src.core.database.metrics import DatabaseMetrics
from src.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger
from src.domain.models.progression import ProgressionState, total_accumulated_xp
from src.modules.progression.service import ProgressionService
from src.modules.shared.exceptions import (
    EmptySessionError,
    StoreUnavailableError,
    ValidationError,
)
from tests.fakes import InMemoryProgressionStore

USER = "user-123"


# ============================================================================
# LOAD
# ============================================================================


@pytest.mark.unit
class TestLoad:
    async def test_creates_default_row_on_first_load(self, progression_service, store):
        # Act
        update = await progression_service.load(USER)

        # Assert
        assert update.state == ProgressionState(level=1, current_xp=0, xp_to_next_level=100)
        assert update.version == 1
        assert store.rows[USER].version == 1
        assert store.update_calls == 0

    async def test_returns_existing_row_without_writing(self, progression_service, store):
        # Arrange
        store.seed(USER, level=3, current_xp=120, xp_to_next_level=300, version=7)

        # Act
        update = await progression_service.load(USER)

        # Assert
        assert update.state == ProgressionState(level=3, current_xp=120, xp_to_next_level=300)
        assert update.version == 7
        assert store.update_calls == 0

    async def test_repairs_corrupt_row(self, progression_service, store, caplog):
        # Arrange - XP at rest above the threshold
        store.seed(USER, level=2, current_xp=250, xp_to_next_level=200, version=4)

        # Act
        with caplog.at_level(logging.WARNING):
            update = await progression_service.load(USER)

        # Assert
        assert update.repaired is True
        assert update.state == ProgressionState(level=3, current_xp=50, xp_to_next_level=300)
        row = store.rows[USER]
        assert (row.level, row.current_xp, row.xp_to_next_level, row.version) == (3, 50, 300, 5)
        assert any("Repairing progression state" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize("bad_user", ["", "   ", None, 42, "no spaces allowed", "x" * 65])
    async def test_rejects_malformed_user_id(self, progression_service, bad_user):
        with pytest.raises(ValidationError):
            await progression_service.load(bad_user)


# ============================================================================
# APPLY XP
# ============================================================================


@pytest.mark.unit
class TestApplyXp:
    async def test_level_up_is_persisted(self, progression_service, store):
        # Arrange
        store.seed(USER, level=1, current_xp=90, xp_to_next_level=100)

        # Act
        update = await progression_service.apply_xp(USER, 50)

        # Assert
        assert update.state == ProgressionState(level=2, current_xp=40, xp_to_next_level=200)
        assert update.leveled_up is True
        assert update.levels_gained == 1
        assert update.version == 2
        row = store.rows[USER]
        assert (row.level, row.current_xp, row.xp_to_next_level) == (2, 40, 200)

    async def test_creates_row_for_new_user(self, progression_service, store):
        update = await progression_service.apply_xp(USER, 30)

        assert update.state.current_xp == 30
        assert store.rows[USER].version == 2

    async def test_zero_delta_is_a_no_op(self, progression_service, store):
        # Arrange
        store.seed(USER, level=2, current_xp=10, xp_to_next_level=200, version=3)

        # Act
        update = await progression_service.apply_xp(USER, 0)

        # Assert
        assert update.state == ProgressionState(level=2, current_xp=10, xp_to_next_level=200)
        assert store.rows[USER].version == 3
        assert store.update_calls == 0

    @pytest.mark.parametrize("bad_delta", [-1, 1.5, True, None, "ten"])
    async def test_rejects_invalid_delta(self, progression_service, store, bad_delta):
        with pytest.raises(ValidationError):
            await progression_service.apply_xp(USER, bad_delta)

        assert store.units_opened == 0

    async def test_publishes_events_after_commit(self, progression_service, store, recorded_events):
        # Arrange
        store.seed(USER, level=1, current_xp=90, xp_to_next_level=100)

        # Act
        await progression_service.apply_xp(USER, 50)

        # Assert
        names = [name for name, _ in recorded_events]
        assert names == ["progression.xp_applied", "progression.leveled_up"]
        leveled = recorded_events[1][1]
        assert leveled["old_level"] == 1
        assert leveled["new_level"] == 2
        assert leveled["levels_gained"] == 1
        assert "occurred_at" in leveled

    async def test_no_level_up_event_below_threshold(self, progression_service, recorded_events):
        await progression_service.apply_xp(USER, 10)

        assert [name for name, _ in recorded_events] == ["progression.xp_applied"]

    async def test_failing_listener_does_not_fail_the_save(self, progression_service, event_bus, store):
        # Arrange
        def broken(payload):
            raise RuntimeError("listener bug")

        event_bus.subscribe("progression.*", broken)

        # Act
        update = await progression_service.apply_xp(USER, 150)

        # Assert
        assert update.state.level == 2
        assert store.rows[USER].level == 2


# ============================================================================
# CONCURRENCY
# ============================================================================


@pytest.mark.unit
class TestConcurrency:
    async def test_concurrent_saves_lose_no_xp(self, event_bus):
        """Every concurrent apply_xp lands; lifetime XP equals the sum of deltas."""
        # Arrange
        store = InMemoryProgressionStore(interleave=True)
        store.seed(USER)
        deltas = [40, 75, 120, 5, 60, 90, 33, 250]
        service = ProgressionService(
            store,
            event_bus,
            get_logger("tests.concurrency"),
            retry_policy=DatabaseRetryPolicy(
                DatabaseRetryConfig(
                    max_attempts=len(deltas) + 2,
                    initial_backoff_ms=0,
                    max_backoff_ms=0,
                    jitter_ms=0,
                )
            ),
        )

        # Act
        await asyncio.gather(*(service.apply_xp(USER, delta) for delta in deltas))

        # Assert
        row = store.rows[USER]
        final = ProgressionState(row.level, row.current_xp, row.xp_to_next_level)
        assert total_accumulated_xp(final) == sum(deltas)
        assert row.version == 1 + len(deltas)
        assert DatabaseMetrics.snapshot()["write_conflicts"] > 0

    async def test_conflict_is_retried_with_fresh_state(self, progression_service, store):
        # Arrange
        store.seed(USER, level=1, current_xp=50, xp_to_next_level=100)
        store.forced_conflicts = 2

        # Act
        update = await progression_service.apply_xp(USER, 20)

        # Assert
        assert update.state.current_xp == 70
        assert store.units_opened == 3
        assert store.rollbacks == 2
        assert DatabaseMetrics.snapshot()["write_conflicts"] == 2

    async def test_exhausted_retries_surface_store_unavailable(self, progression_service, store):
        # Arrange
        store.seed(USER, level=1, current_xp=50, xp_to_next_level=100)
        store.forced_conflicts = 99

        # Act
        with pytest.raises(StoreUnavailableError) as exc_info:
            await progression_service.apply_xp(USER, 20)

        # Assert
        assert exc_info.value.attempts == 5
        assert exc_info.value.is_retryable is True
        assert store.update_calls == 5
        assert store.rows[USER].current_xp == 50
        assert DatabaseMetrics.snapshot()["retry_give_ups"] == 1

    async def test_unreachable_store_is_retried_then_surfaced(self, progression_service, store):
        # Arrange
        store.unavailable_failures = 99

        # Act & Assert
        with pytest.raises(StoreUnavailableError):
            await progression_service.apply_xp(USER, 10)

        assert store.units_opened == 5

    async def test_transient_outage_recovers(self, progression_service, store):
        store.unavailable_failures = 1

        update = await progression_service.apply_xp(USER, 10)

        assert update.state.current_xp == 10


# ============================================================================
# RECORD SESSION
# ============================================================================


@pytest.mark.unit
class TestRecordSession:
    async def test_session_and_xp_land_together(self, progression_service, store, recorded_events):
        # Arrange
        store.seed(USER, level=1, current_xp=60, xp_to_next_level=100)

        # Act - 24m41s stopwatch earns 48 XP
        update = await progression_service.record_session(USER, 24 * 60 + 41, "stopwatch", subject="Chemistry")

        # Assert
        assert update.session.duration_minutes == 24
        assert update.session.xp_earned == 48
        assert update.state == ProgressionState(level=2, current_xp=8, xp_to_next_level=200)
        assert update.total_sessions == 1
        assert [s.id for s in store.sessions] == [update.session_id]
        assert store.sessions[0].subject == "Chemistry"
        assert store.rows[USER].total_sessions == 1
        assert [name for name, _ in recorded_events] == [
            "study.session_recorded",
            "progression.xp_applied",
            "progression.leveled_up",
        ]
        assert recorded_events[0][1]["session_id"] == update.session_id

    async def test_completed_countdown(self, progression_service, store):
        update = await progression_service.record_session(
            USER, 1499, "countdown", duration_seconds=1500, completed=True
        )

        assert update.session.duration_minutes == 25
        assert update.state.current_xp == 50

    async def test_sub_minute_session_is_saved_with_zero_xp(self, progression_service, store):
        # Arrange
        store.seed(USER, level=1, current_xp=10, xp_to_next_level=100, version=2)

        # Act
        update = await progression_service.record_session(USER, 45, "stopwatch")

        # Assert
        assert update.session.xp_earned == 0
        assert update.state.current_xp == 10
        assert len(store.sessions) == 1
        assert store.rows[USER].version == 3

    async def test_empty_session_leaves_state_unchanged(self, progression_service, store):
        """A zero-second timer is refused and load() still sees the old state."""
        # Arrange
        store.seed(USER, level=2, current_xp=40, xp_to_next_level=200, version=5)

        # Act
        with pytest.raises(EmptySessionError):
            await progression_service.record_session(USER, 0, "stopwatch")
        update = await progression_service.load(USER)

        # Assert
        assert update.state == ProgressionState(level=2, current_xp=40, xp_to_next_level=200)
        assert update.version == 5
        assert store.sessions == []

    async def test_failed_write_leaves_no_session(self, progression_service, store):
        """The session row is discarded when the progression write fails."""
        # Arrange
        store.seed(USER, level=1, current_xp=0, xp_to_next_level=100)
        store.fail_update_with = RuntimeError("disk full")

        # Act
        with pytest.raises(RuntimeError):
            await progression_service.record_session(USER, 600, "stopwatch")

        # Assert
        assert store.sessions == []
        assert store.rows[USER].current_xp == 0
        assert store.rollbacks == 1

    async def test_conflict_does_not_duplicate_session(self, progression_service, store):
        # Arrange
        store.seed(USER)
        store.forced_conflicts = 1

        # Act
        await progression_service.record_session(USER, 600, "stopwatch")

        # Assert
        assert len(store.sessions) == 1
        assert store.rows[USER].current_xp == 20
        assert store.rows[USER].total_sessions == 1

    async def test_session_repairs_corrupt_row_first(self, progression_service, store):
        # Arrange - stale threshold for level 3
        store.seed(USER, level=3, current_xp=80, xp_to_next_level=100)

        # Act - 10 minutes is 20 XP
        update = await progression_service.record_session(USER, 600, "stopwatch")

        # Assert
        assert update.repaired is True
        assert update.state == ProgressionState(level=3, current_xp=100, xp_to_next_level=300)

    async def test_to_dict(self, progression_service):
        update = await progression_service.record_session(USER, 600, "stopwatch")

        data = update.to_dict()

        assert data["user_id"] == USER
        assert data["current_xp"] == 20
        assert data["session"]["id"] == update.session_id
        assert data["session"]["xp_earned"] == 20


@pytest.mark.unit
class TestConfigOverrides:
    async def test_custom_xp_rates(self, store, fast_retry_policy):
        # Arrange
        service = ProgressionService(
            store,
            EventBus(),
            get_logger("tests.overrides"),
            config={"XP_PER_STUDY_MINUTE": 5, "XP_PER_LEVEL": 50},
            retry_policy=fast_retry_policy,
        )

        # Act - 12 minutes at 5 XP is 60 XP against a first threshold of 50
        update = await service.record_session(USER, 12 * 60, "stopwatch")

        # Assert
        assert update.state == ProgressionState(level=2, current_xp=10, xp_to_next_level=100)
