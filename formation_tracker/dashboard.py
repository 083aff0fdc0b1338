"""Dashboard service: snapshot loading, cached aggregation and status changes."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable

import structlog

from formation_tracker.aggregator import Dashboard, build_dashboard
from formation_tracker.config import Settings
from formation_tracker.dates import start_of_day
from formation_tracker.models import ActingUser, Training, TrainingStatus
from formation_tracker.notion_store import create_store
from formation_tracker.store import DocumentStore
from formation_tracker.transitions import (
    StatusTransitionEngine,
    TaskCreationError,
    TransitionError,
    TransitionResult,
)

logger = structlog.get_logger()


class DashboardService:
    """Serves the management dashboard and applies training status changes.

    The aggregated dashboard is cached until a write completes or the
    calendar day changes; it is never recomputed speculatively.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock
        self._engine = StatusTransitionEngine(store, settings, clock)
        self._cached: Dashboard | None = None
        self._generation = 0

    async def get_dashboard(self) -> Dashboard:
        """Return the cached dashboard, rebuilding it from a fresh fetch if stale."""
        today = start_of_day(self._clock())
        if self._cached is not None and self._cached.as_of == today:
            logger.debug("dashboard_cache_hit")
            return self._cached

        generation = self._generation
        dashboard = await self._rebuild(today)

        # A write completed while fetching; keep the result out of the cache
        if generation == self._generation:
            self._cached = dashboard
        else:
            logger.info("dashboard_rebuild_superseded")
        return dashboard

    def invalidate(self) -> None:
        """Drop the cached dashboard."""
        logger.debug("dashboard_invalidated")
        self._cached = None
        self._generation += 1

    async def change_training_status(
        self,
        training: Training,
        new_status: TrainingStatus,
        user: ActingUser | None,
    ) -> TransitionResult:
        """Apply a status change and invalidate the cache once it is written."""
        try:
            result = await self._engine.change_status(training, new_status, user)
        except TaskCreationError as e:
            # The status write went through even though the task did not
            logger.error("status_changed_without_task", training_id=training.id, error=str(e))
            self.invalidate()
            raise
        except TransitionError as e:
            logger.error("status_change_failed", training_id=training.id, error=str(e))
            raise

        self.invalidate()
        return result

    async def _rebuild(self, today: datetime) -> Dashboard:
        logger.info("dashboard_rebuild_start")

        # Fetches run concurrently; any failure aborts the rebuild
        projects, tasks, trainings = await asyncio.gather(
            self._store.list_projects(),
            self._store.list_open_tasks(),
            self._store.list_trainings(),
        )

        dashboard = build_dashboard(
            projects,
            tasks,
            trainings,
            today,
            critical_limit=self._settings.critical_list_size,
            horizon_days=self._settings.week_ahead_days,
        )
        logger.info(
            "dashboard_rebuilt",
            projects=len(projects),
            tasks=len(tasks),
            trainings=len(trainings),
            week_ahead=len(dashboard.week_ahead),
        )
        return dashboard


def configure_logging(settings: Settings) -> None:
    """Configure structlog for console output at the configured level."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.stdlib.NAME_TO_LEVEL.get(settings.log_level.lower(), 20)
        ),
    )


def create_service(settings: Settings | None = None) -> DashboardService:
    """Create a Notion-backed dashboard service with settings from environment."""
    settings = settings or Settings()
    configure_logging(settings)
    return DashboardService(create_store(settings), settings)
