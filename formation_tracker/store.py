"""Document-store interface and an in-memory implementation."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from typing import Protocol

import structlog

from formation_tracker.models import (
    Project,
    Task,
    TaskOrigin,
    Training,
    TrainingStatus,
)

logger = structlog.get_logger()


class StoreError(Exception):
    """Raised when a read or write against the document store fails."""


class DocumentStore(Protocol):
    """Reads and single-document writes the tracker needs from storage."""

    async def list_projects(self) -> list[Project]: ...

    async def list_trainings(self) -> list[Training]: ...

    async def list_open_tasks(self) -> list[Task]: ...

    async def update_training_status(
        self, training_id: str, status: TrainingStatus
    ) -> None: ...

    async def find_automated_task(
        self, training_id: str, trigger: TrainingStatus
    ) -> Task | None: ...

    async def create_task(self, task: Task) -> Task: ...


class TransactionalTaskStore(Protocol):
    """A store able to create an automated task only if its trigger pair is new."""

    supports_conditional_create: bool

    async def create_task_if_absent(self, task: Task) -> Task | None: ...


class InMemoryStore:
    """Process-local store, used for tests and offline runs.

    ``create_task_if_absent`` holds a lock across the duplicate check and the
    insert, so concurrent transitions never produce two automated tasks for
    the same (training, trigger) pair.
    """

    supports_conditional_create = True

    def __init__(
        self,
        projects: list[Project] | None = None,
        trainings: list[Training] | None = None,
        tasks: list[Task] | None = None,
    ) -> None:
        self._projects = {p.id: p for p in projects or []}
        self._trainings = {t.id: t for t in trainings or []}
        self._tasks = {t.id: t for t in tasks or []}
        self._lock = asyncio.Lock()

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def training(self, training_id: str) -> Training:
        return self._trainings[training_id]

    async def list_projects(self) -> list[Project]:
        return list(self._projects.values())

    async def list_trainings(self) -> list[Training]:
        return list(self._trainings.values())

    async def list_open_tasks(self) -> list[Task]:
        return [t for t in self._tasks.values() if not t.is_done]

    async def update_training_status(
        self, training_id: str, status: TrainingStatus
    ) -> None:
        training = self._trainings.get(training_id)
        if training is None:
            raise StoreError(f"Training not found: {training_id}")
        self._trainings[training_id] = replace(training, status=status)

    async def find_automated_task(
        self, training_id: str, trigger: TrainingStatus
    ) -> Task | None:
        for task in self._tasks.values():
            if (
                task.origin == TaskOrigin.AUTOMATIC
                and task.training_id == training_id
                and task.trigger == trigger
            ):
                return task
        return None

    async def create_task(self, task: Task) -> Task:
        stored = replace(task, id=task.id or uuid.uuid4().hex)
        self._tasks[stored.id] = stored
        logger.debug("task_stored", task_id=stored.id)
        return stored

    async def create_task_if_absent(self, task: Task) -> Task | None:
        async with self._lock:
            existing = await self.find_automated_task(task.training_id, task.trigger)
            if existing is not None:
                return None
            return await self.create_task(task)
