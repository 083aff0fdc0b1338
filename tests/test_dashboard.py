"""Tests for formation_tracker.dashboard."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from formation_tracker.config import Settings
from formation_tracker.dashboard import DashboardService, create_service
from formation_tracker.models import (
    ActingUser,
    MilestoneSlot,
    Project,
    Task,
    TaskPriority,
    Training,
    TrainingStatus,
)
from formation_tracker.store import InMemoryStore, StoreError
from formation_tracker.transitions import StatusUpdateError, TaskCreationError

NOW = datetime(2025, 3, 10, 9, 0)
USER = ActingUser(uid="user-1", name="Ana")


def _make_settings() -> Settings:
    return Settings(notion_token="test-token", critical_list_size=3)


def _make_store() -> InMemoryStore:
    return InMemoryStore(
        projects=[
            Project(
                id="p-1",
                municipality="Sobral",
                slots={"s1": MilestoneSlot(start=NOW + timedelta(days=2))},
            )
        ],
        trainings=[
            Training(
                id="t-1",
                title="Matemática",
                status=TrainingStatus.IN_TRAINING,
                start_date=NOW + timedelta(days=3),
            )
        ],
        tasks=[
            Task(
                id="task-1",
                description="Confirmar sala",
                priority=TaskPriority.URGENT,
                project_id="p-1",
            )
        ],
    )


def _service(store) -> DashboardService:
    return DashboardService(store, _make_settings(), clock=lambda: NOW)


class TestDashboardService:
    """Tests for DashboardService."""

    @pytest.mark.asyncio
    async def test_builds_dashboard_from_store(self):
        service = _service(_make_store())

        dashboard = await service.get_dashboard()

        assert dashboard.stats.open_tasks == 1
        assert dashboard.stats.active_trainings == 1
        assert dashboard.projects[0].urgent_count == 1
        assert len(dashboard.week_ahead) == 2

    @pytest.mark.asyncio
    async def test_dashboard_is_cached_until_invalidated(self):
        store = _make_store()
        store.list_projects = AsyncMock(wraps=store.list_projects)
        service = _service(store)

        first = await service.get_dashboard()
        second = await service.get_dashboard()

        assert first is second
        store.list_projects.assert_awaited_once()

        service.invalidate()
        await service.get_dashboard()

        assert store.list_projects.await_count == 2

    @pytest.mark.asyncio
    async def test_status_change_invalidates_cache(self):
        store = _make_store()
        service = _service(store)
        training = store.training("t-1")

        before = await service.get_dashboard()
        result = await service.change_training_status(
            training, TrainingStatus.POST_TRAINING, USER
        )
        after = await service.get_dashboard()

        assert result.created_task is not None
        assert after is not before
        assert after.stats.open_tasks == 2
        assert [t.id for t in after.follow_ups] == ["t-1"]

    @pytest.mark.asyncio
    async def test_failed_status_write_keeps_cache(self):
        store = _make_store()
        service = _service(store)
        before = await service.get_dashboard()

        with pytest.raises(StatusUpdateError):
            await service.change_training_status(
                Training(id="missing", title="x", status=TrainingStatus.IN_TRAINING),
                TrainingStatus.POST_TRAINING,
                USER,
            )

        assert await service.get_dashboard() is before

    @pytest.mark.asyncio
    async def test_partial_failure_still_invalidates(self):
        store = _make_store()
        store.create_task_if_absent = AsyncMock(side_effect=StoreError("write failed"))
        service = _service(store)
        before = await service.get_dashboard()

        with pytest.raises(TaskCreationError):
            await service.change_training_status(
                store.training("t-1"), TrainingStatus.COMPLETED, USER
            )

        after = await service.get_dashboard()
        assert after is not before
        assert after.stats.active_trainings == 0

    @pytest.mark.asyncio
    async def test_fetch_failure_aborts_rebuild(self):
        store = _make_store()
        service = _service(store)
        before = await service.get_dashboard()
        service.invalidate()
        store.list_trainings = AsyncMock(side_effect=StoreError("offline"))

        with pytest.raises(StoreError):
            await service.get_dashboard()

        store.list_trainings = AsyncMock(return_value=[])
        rebuilt = await service.get_dashboard()
        assert rebuilt is not before
        assert rebuilt.stats.active_trainings == 0

    @pytest.mark.asyncio
    async def test_write_during_rebuild_is_not_cached_stale(self):
        store = _make_store()
        training = store.training("t-1")
        fetched = asyncio.Event()
        release = asyncio.Event()
        list_trainings = store.list_trainings

        async def slow_list_trainings():
            snapshot = await list_trainings()
            fetched.set()
            await release.wait()
            return snapshot

        store.list_trainings = slow_list_trainings
        service = _service(store)

        rebuild = asyncio.create_task(service.get_dashboard())
        await fetched.wait()
        await service.change_training_status(
            training, TrainingStatus.POST_TRAINING, USER
        )
        release.set()
        stale = await rebuild

        store.list_trainings = list_trainings
        fresh = await service.get_dashboard()

        assert stale.stats.active_trainings == 1
        assert fresh.stats.active_trainings == 0
        assert fresh.stats.open_tasks == 2


class TestCreateService:
    def test_uses_yaml_collection_ids(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("collections:\n  tasks: db-yaml-tasks\n")
        settings = Settings(
            notion_token="test-token",
            projects_database_id="db-p",
            tasks_database_id="db-t",
            trainings_database_id="db-f",
            config_file=str(config),
        )

        service = create_service(settings)

        assert isinstance(service, DashboardService)
        assert service._store._database_ids == {
            "projects": "db-p",
            "tasks": "db-yaml-tasks",
            "trainings": "db-f",
        }

    def test_missing_database_id_is_rejected(self, tmp_path):
        settings = Settings(
            notion_token="test-token",
            config_file=str(tmp_path / "absent.yaml"),
        )

        with pytest.raises(ValueError):
            create_service(settings)
