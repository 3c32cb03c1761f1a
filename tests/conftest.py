"""
Pytest Configuration and Fixtures for the Study Twin Tests
==========================================================

Purpose
-------
Centralized test fixtures for the Study Twin test suite: in-memory store,
event bus, fast retry policy, and a PostgreSQL testcontainer for
integration tests.

Responsibilities
----------------
- Force the testing environment before application modules load
- Testcontainers setup for PostgreSQL (skipped when Docker is unreachable)
- Service construction against the in-memory store and a fake text generator
- Metrics reset between tests

Architecture Notes
------------------
- Unit tests use the in-memory store from ``tests/fakes.py`` (fast, isolated)
- Integration tests use testcontainers (real database)
- Fixtures follow scope hierarchy: session > function
- The database schema is dropped and recreated for every integration test
"""

from __future__ import annotations

import os

os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from typing import Any, AsyncGenerator, Dict, Generator, List, Tuple

import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from src.core.database.metrics import DatabaseMetrics
from src.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger
from src.modules.progression.service import ProgressionService
from src.modules.stats.service import StudyStatsService
from src.modules.study_aids.service import StudyAidService
from tests.fakes import FakeTextGenerator, InMemoryProgressionStore

logger = get_logger(__name__)


# ============================================================================
# GLOBAL FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def reset_database_metrics() -> Generator[None, None, None]:
    DatabaseMetrics.reset()
    yield
    DatabaseMetrics.reset()


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


POSTGRES_IMAGE = "postgres:16-alpine"


def start_postgres_container(image: str = POSTGRES_IMAGE) -> PostgresContainer:
    """
    Create and start a PostgreSQL testcontainer, or skip the requesting test.

    testcontainers connects to the Docker daemon when the container object is
    built, so construction and ``start()`` share the same guard.
    """
    try:
        container = PostgresContainer(image=image, driver="asyncpg")
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker is not available for integration tests: {exc}")
    return container


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Skips dependent tests when Docker is not reachable.
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = start_postgres_container()

    logger.info("PostgreSQL testcontainer started")
    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def database(postgres_container: PostgresContainer) -> AsyncGenerator[None, None]:
    """
    Initialize DatabaseService against the container with a fresh schema.

    Scope: function (clean slate per test)
    """
    await DatabaseService.initialize(postgres_container.get_connection_url())
    await DatabaseService.drop_all()
    await DatabaseService.create_all()
    try:
        yield
    finally:
        await DatabaseService.shutdown()


# ============================================================================
# SERVICE FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def fast_retry_policy() -> DatabaseRetryPolicy:
    """Five attempts with no backoff, so conflict tests run instantly."""
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(max_attempts=5, initial_backoff_ms=0, max_backoff_ms=0, jitter_ms=0)
    )


@pytest.fixture
def store() -> InMemoryProgressionStore:
    return InMemoryProgressionStore()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded_events(event_bus: EventBus) -> List[Tuple[str, Dict[str, Any]]]:
    """Every event published on ``event_bus``, in order, as (name, payload)."""
    events: List[Tuple[str, Dict[str, Any]]] = []

    for name in (
        "progression.xp_applied",
        "progression.leveled_up",
        "study.session_recorded",
        "study_aids.material_saved",
        "study_aids.doubt_solved",
    ):

        def listener(payload: Dict[str, Any], _name: str = name) -> None:
            events.append((_name, payload))

        event_bus.subscribe(name, listener)

    return events


@pytest.fixture
def progression_service(
    store: InMemoryProgressionStore,
    event_bus: EventBus,
    fast_retry_policy: DatabaseRetryPolicy,
) -> ProgressionService:
    return ProgressionService(
        store,
        event_bus,
        get_logger("tests.progression_service"),
        retry_policy=fast_retry_policy,
    )


@pytest.fixture
def stats_service(
    store: InMemoryProgressionStore,
    event_bus: EventBus,
    fast_retry_policy: DatabaseRetryPolicy,
) -> StudyStatsService:
    return StudyStatsService(
        store,
        event_bus,
        get_logger("tests.stats_service"),
        retry_policy=fast_retry_policy,
    )


@pytest.fixture
def text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def study_aid_service(
    store: InMemoryProgressionStore,
    text_generator: FakeTextGenerator,
    event_bus: EventBus,
    fast_retry_policy: DatabaseRetryPolicy,
) -> StudyAidService:
    return StudyAidService(
        store,
        text_generator,
        event_bus,
        get_logger("tests.study_aid_service"),
        retry_policy=fast_retry_policy,
    )
