"""
Study Twin - Application Entry Point
====================================

Bootstrap
---------
- Config validation
- Database initialization
- Event bus
- Optional metrics backend
- Progression and stats services
- Study aid service, when a text generator is supplied
- Graceful shutdown

Running this module initializes the infrastructure, ensures the schema
exists, runs a database health check and exits non-zero if it fails.
Embedding applications call `startup()` / `shutdown()` themselves and use
the returned `Application`.
"""

import asyncio
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from src.core.config.config import Config
from src.core.database.metrics import AbstractDatabaseMetricsBackend, DatabaseMetrics
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger, shutdown_logging
from src.modules.progression import ProgressionService, SqlProgressionStore
from src.modules.stats import StudyStatsService
from src.modules.study_aids import StudyAidService, TextGenerator

logger = get_logger(__name__)


@dataclass
class Application:
    """Wired services sharing one store and one event bus."""

    event_bus: EventBus
    progression: ProgressionService
    stats: StudyStatsService
    study_aids: Optional[StudyAidService] = None


# ============================================================================
# Application Bootstrap
# ============================================================================


async def startup(
    create_schema: bool = False,
    text_generator: Optional[TextGenerator] = None,
    metrics_backend: Optional[AbstractDatabaseMetricsBackend] = None,
) -> Application:
    """
    Initialize all infrastructure components and wire the services.

    Notes and doubts need a text-generation backend; without one
    ``Application.study_aids`` is None.
    """
    logger.info("========== STUDY TWIN INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service
    try:
        if metrics_backend is not None:
            DatabaseMetrics.configure_backend(metrics_backend)
        await DatabaseService.initialize()
        if create_schema:
            await DatabaseService.create_all()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Services
    event_bus = EventBus()
    store = SqlProgressionStore()
    app = Application(
        event_bus=event_bus,
        progression=ProgressionService(
            store, event_bus, get_logger("src.modules.progression.service")
        ),
        stats=StudyStatsService(store, event_bus, get_logger("src.modules.stats.service")),
    )
    if text_generator is not None:
        app.study_aids = StudyAidService(
            store, text_generator, event_bus, get_logger("src.modules.study_aids.service")
        )
    logger.info("✓ Services initialized")

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return app


# ============================================================================
# Application Shutdown
# ============================================================================


async def shutdown(app: Optional[Application]) -> None:
    """Gracefully shut down infrastructure services."""
    logger.info("========== STUDY TWIN SHUTDOWN START ==========")

    if app is not None:
        app.event_bus.clear()

    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================


async def main() -> int:
    """
    Lifecycle:
        1. Validate configuration
        2. Initialize infrastructure and ensure the schema exists
        3. Health check
        4. Shut down
    """
    app: Optional[Application] = None

    try:
        app = await startup(create_schema=True)
        healthy = await DatabaseService.health_check()
        if not healthy:
            logger.error("Database health check failed")
            return 1
        logger.info("Database health check passed")
        return 0

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        return 1

    finally:
        await shutdown(app)


# ============================================================================
# Process Startup
# ============================================================================


def _install_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    try:
        loop.add_signal_handler(signal.SIGTERM, loop.stop)
        logger.debug("SIGTERM handler installed")
    except NotImplementedError:
        logger.debug("SIGTERM not supported on this platform (likely Windows)")


if __name__ == "__main__":
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _install_signal_handlers(loop)

    exit_code = 1
    try:
        exit_code = loop.run_until_complete(main())
    except KeyboardInterrupt:
        logger.info("Stopped via keyboard interrupt.")
    finally:
        loop.close()
        shutdown_logging()
    sys.exit(exit_code)
