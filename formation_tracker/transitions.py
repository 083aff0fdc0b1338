"""State machine and automated-task logic for training status changes."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable

import structlog

from formation_tracker.config import Settings
from formation_tracker.dates import add_days
from formation_tracker.models import (
    AUTOMATED_TASK_TRIGGERS,
    ActingUser,
    Task,
    TaskOrigin,
    TaskPriority,
    TaskStatus,
    Training,
    TrainingStatus,
)
from formation_tracker.store import DocumentStore, StoreError, TransactionalTaskStore

logger = structlog.get_logger()


class TransitionError(Exception):
    """Raised when a training status change fails."""


class NotAuthenticatedError(TransitionError):
    """Raised when no acting user is available."""


class StatusUpdateError(TransitionError):
    """The status write failed; no automated task was attempted."""


class DuplicateCheckError(TransitionError):
    """The lookup for an existing automated task failed; nothing was created."""


class TaskCreationError(TransitionError):
    """The status was updated but its automated task could not be created."""

    def __init__(self, training_id: str, trigger: TrainingStatus) -> None:
        super().__init__(
            f"Training {training_id} moved to {trigger.value} "
            f"but its automated task was not created"
        )
        self.training_id = training_id
        self.trigger = trigger
        self.status_updated = True


@dataclass
class TransitionResult:
    """Outcome of a status change."""

    training: Training
    created_task: Task | None = None
    skipped_duplicate: bool = False


class StatusTransitionEngine:
    """Applies commanded status changes and spawns follow-up tasks.

    Legality of a transition is the caller's concern; the engine only reacts
    to the target status.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._due_days = settings.automated_task_due_days
        self._clock = clock

    async def change_status(
        self,
        training: Training,
        new_status: TrainingStatus,
        user: ActingUser | None,
    ) -> TransitionResult:
        """Persist ``new_status`` and create its automated task at most once."""
        if user is None:
            raise NotAuthenticatedError("No authenticated user for status change")

        log = logger.bind(
            training_id=training.id,
            from_status=training.status.value,
            to_status=new_status.value,
            user=user.uid,
        )

        # 1. Status write
        log.info("updating_training_status")
        try:
            await self._store.update_training_status(training.id, new_status)
        except StoreError as e:
            log.error("status_update_failed", error=str(e))
            raise StatusUpdateError(str(e)) from e

        result = TransitionResult(training=replace(training, status=new_status))

        # 2. Trigger lookup
        template = AUTOMATED_TASK_TRIGGERS.get(new_status)
        if template is None:
            log.debug("no_automated_task")
            return result

        task = self._build_task(training, new_status, template, user)

        # 3-4. Guard and create
        if getattr(self._store, "supports_conditional_create", False) is True:
            created = await self._create_if_absent(task, log)
        else:
            created = await self._check_then_create(task, log)

        if created is None:
            log.info("automated_task_exists")
            result.skipped_duplicate = True
        else:
            log.info("automated_task_created", task_id=created.id)
            result.created_task = created
        return result

    async def _check_then_create(self, task: Task, log) -> Task | None:
        # Not atomic: concurrent calls for the same pair may both create
        try:
            existing = await self._store.find_automated_task(
                task.training_id, task.trigger
            )
        except StoreError as e:
            log.error("duplicate_check_failed", error=str(e))
            raise DuplicateCheckError(str(e)) from e

        if existing is not None:
            return None

        try:
            return await self._store.create_task(task)
        except StoreError as e:
            log.error("automated_task_failed", error=str(e))
            raise TaskCreationError(task.training_id, task.trigger) from e

    async def _create_if_absent(self, task: Task, log) -> Task | None:
        store: TransactionalTaskStore = self._store  # type: ignore[assignment]
        try:
            return await store.create_task_if_absent(task)
        except StoreError as e:
            log.error("automated_task_failed", error=str(e))
            raise TaskCreationError(task.training_id, task.trigger) from e

    def _build_task(
        self,
        training: Training,
        trigger: TrainingStatus,
        template: str,
        user: ActingUser,
    ) -> Task:
        now = self._clock()
        return Task(
            id="",
            description=template.format(title=training.title),
            status=TaskStatus.PENDING,
            priority=TaskPriority.NORMAL,
            due_date=add_days(now, self._due_days),
            municipality=training.municipality,
            region=training.region,
            responsible_id=user.uid,
            responsible_name=user.name or "Admin",
            origin=TaskOrigin.AUTOMATIC,
            training_id=training.id,
            trigger=trigger,
            created_at=now,
        )
