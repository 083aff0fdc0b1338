"""Notion-backed document store for formation-tracker."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import structlog
from notion_client import AsyncClient
from notion_client.errors import HTTPResponseError, RequestTimeoutError
from notion_client.helpers import async_collect_paginated_api

from formation_tracker.config import Settings
from formation_tracker.dates import format_iso, parse_iso
from formation_tracker.models import (
    MILESTONE_KEYS,
    MilestoneSlot,
    Project,
    Task,
    TaskOrigin,
    TaskPriority,
    TaskStatus,
    Training,
    TrainingStatus,
    milestone_name,
)
from formation_tracker.store import StoreError
from formation_tracker.yaml_config import COLLECTIONS, CollectionConfig

logger = structlog.get_logger()

NOTION_ERRORS = (HTTPResponseError, RequestTimeoutError)

TEXT_LIMIT = 2000  # Notion rich_text limit


class NotionDocumentStore:
    """Document store over three Notion databases: projects, tasks and trainings.

    Notion has no conditional writes, so the transition engine falls back to
    a check-then-create guard with this store.
    """

    supports_conditional_create = False

    def __init__(self, client: AsyncClient, database_ids: dict[str, str]) -> None:
        missing = [c for c in COLLECTIONS if not database_ids.get(c)]
        if missing:
            raise ValueError(f"Missing Notion database ids for: {', '.join(missing)}")
        self._client = client
        self._database_ids = database_ids
        self._data_source_ids: dict[str, str] = {}

    async def _data_source_id(self, collection: str) -> str:
        """Resolve and cache the data source backing a collection's database."""
        if collection in self._data_source_ids:
            return self._data_source_ids[collection]

        database_id = self._database_ids[collection]
        database = await self._call(
            "retrieve_database",
            self._client.databases.retrieve(database_id=database_id),
        )
        data_sources = database.get("data_sources", [])
        if not data_sources:
            logger.error("no_data_source_found", database_id=database_id)
            raise StoreError(f"No data source for database {database_id}")

        self._data_source_ids[collection] = data_sources[0]["id"]
        return self._data_source_ids[collection]

    async def _query(self, collection: str, filter: dict | None = None) -> list[dict]:
        source_id = await self._data_source_id(collection)
        params = {"data_source_id": source_id}
        if filter:
            params["filter"] = filter
        logger.info("querying_notion", collection=collection)
        pages = await self._call(
            "query",
            async_collect_paginated_api(self._client.data_sources.query, **params),
        )
        logger.info("query_complete", collection=collection, count=len(pages))
        return pages

    @staticmethod
    async def _call(operation: str, awaitable):
        try:
            return await awaitable
        except NOTION_ERRORS as e:
            logger.error("notion_request_failed", operation=operation, error=str(e))
            raise StoreError(f"Notion {operation} failed: {e}") from e

    async def list_projects(self) -> list[Project]:
        pages = await self._query("projects")
        return [p for p in map(self._page_to_project, pages) if p]

    async def list_trainings(self) -> list[Training]:
        pages = await self._query("trainings")
        return [t for t in map(self._page_to_training, pages) if t]

    async def list_open_tasks(self) -> list[Task]:
        pages = await self._query(
            "tasks",
            filter={
                "property": "Status",
                "select": {"does_not_equal": TaskStatus.DONE.value},
            },
        )
        return [t for t in map(self._page_to_task, pages) if t]

    async def update_training_status(
        self, training_id: str, status: TrainingStatus
    ) -> None:
        logger.info("updating_status", page_id=training_id, new_status=status.value)
        await self._call(
            "update_status",
            self._client.pages.update(
                page_id=training_id,
                properties={"Status": {"select": {"name": status.value}}},
            ),
        )

    async def find_automated_task(
        self, training_id: str, trigger: TrainingStatus
    ) -> Task | None:
        source_id = await self._data_source_id("tasks")
        response = await self._call(
            "find_automated_task",
            self._client.data_sources.query(
                data_source_id=source_id,
                filter={
                    "and": [
                        {
                            "property": "FormacaoOrigemId",
                            "rich_text": {"equals": training_id},
                        },
                        {
                            "property": "OrigemGatilho",
                            "select": {"equals": trigger.value},
                        },
                    ]
                },
                page_size=1,
            ),
        )
        results = response.get("results", [])
        if not results:
            return None

        # Any matching page blocks creation, parseable or not
        existing = self._page_to_task(results[0])
        if existing is None:
            logger.warning(
                "unreadable_automated_task",
                page_id=results[0].get("id"),
                training_id=training_id,
                trigger=trigger.value,
            )
            existing = Task(
                id=results[0].get("id", ""),
                description="",
                origin=TaskOrigin.AUTOMATIC,
                training_id=training_id,
                trigger=trigger,
            )
        return existing

    async def create_task(self, task: Task) -> Task:
        source_id = await self._data_source_id("tasks")
        logger.info("creating_task", training_id=task.training_id)
        page = await self._call(
            "create_task",
            self._client.pages.create(
                parent={"type": "data_source_id", "data_source_id": source_id},
                properties=self._task_properties(task),
            ),
        )
        created = self._page_to_task(page)
        if created is None:
            # The page exists; fall back to what was sent
            logger.warning("created_task_unreadable", page_id=page.get("id"))
            return replace(task, id=page["id"])
        return created

    def _page_to_project(self, page: dict) -> Project | None:
        """Convert a Notion page to a Project."""
        try:
            props = page["properties"]

            slots = {}
            for key in MILESTONE_KEYS:
                name = milestone_name(key)
                # A slot exists only if the database defines its date column
                if name not in props:
                    continue
                start, end = self._extract_date_range(props, name)
                slots[key] = MilestoneSlot(
                    start=start,
                    end=end,
                    completed=props.get(f"{name} OK", {}).get("checkbox", False),
                    details=self._extract_rich_text(props, f"{name} Detalhes"),
                )

            created_at, _ = self._extract_date_range(props, "DataCriacao")
            return Project(
                id=page["id"],
                municipality=self._extract_title(props, "Municipio"),
                region=self._extract_rich_text(props, "UF"),
                created_at=created_at or parse_iso(page.get("created_time")),
                slots=slots,
                implantation_date=self._extract_date_range(props, "DataImplantacao")[0],
                migration_date=self._extract_date_range(props, "DataMigracao")[0],
            )
        except (KeyError, ValueError, IndexError) as e:
            logger.warning("failed_to_parse_page", page_id=page.get("id"), error=str(e))
            return None

    def _page_to_training(self, page: dict) -> Training | None:
        """Convert a Notion page to a Training."""
        try:
            props = page["properties"]
            return Training(
                id=page["id"],
                title=self._extract_title(props, "Titulo"),
                status=TrainingStatus(self._extract_select(props, "Status")),
                municipality=self._extract_rich_text(props, "Municipio"),
                region=self._extract_rich_text(props, "UF"),
                start_date=self._extract_date_range(props, "DataInicio")[0],
                end_date=self._extract_date_range(props, "DataFim")[0],
                code=self._extract_rich_text(props, "Codigo"),
                project_id=self._extract_rich_text(props, "ProjetoId"),
            )
        except (KeyError, ValueError, IndexError) as e:
            logger.warning("failed_to_parse_page", page_id=page.get("id"), error=str(e))
            return None

    def _page_to_task(self, page: dict) -> Task | None:
        """Convert a Notion page to a Task."""
        try:
            props = page["properties"]
            trigger = self._extract_select(props, "OrigemGatilho")
            priority = self._extract_select(props, "Prioridade")
            origin = self._extract_select(props, "Origem")
            return Task(
                id=page["id"],
                description=self._extract_title(props, "Demanda"),
                status=TaskStatus(self._extract_select(props, "Status")),
                priority=TaskPriority(priority) if priority else TaskPriority.NORMAL,
                due_date=self._extract_date_range(props, "Prazo")[0],
                project_id=self._extract_rich_text(props, "ProjetoOrigemId"),
                project_name=self._extract_rich_text(props, "ProjetoOrigemNome"),
                municipality=self._extract_rich_text(props, "Municipio"),
                region=self._extract_rich_text(props, "UF"),
                responsible_id=self._extract_rich_text(props, "ResponsavelId"),
                responsible_name=self._extract_rich_text(props, "ResponsavelNome"),
                origin=TaskOrigin(origin) if origin else TaskOrigin.MANUAL,
                training_id=self._extract_rich_text(props, "FormacaoOrigemId"),
                trigger=TrainingStatus(trigger) if trigger else None,
                created_at=parse_iso(page.get("created_time")),
            )
        except (KeyError, ValueError, IndexError) as e:
            logger.warning("failed_to_parse_page", page_id=page.get("id"), error=str(e))
            return None

    @staticmethod
    def _task_properties(task: Task) -> dict:
        def text(value: str) -> dict:
            return {"rich_text": [{"type": "text", "text": {"content": value[:TEXT_LIMIT]}}]}

        properties = {
            "Demanda": {
                "title": [{"type": "text", "text": {"content": task.description[:TEXT_LIMIT]}}]
            },
            "Status": {"select": {"name": task.status.value}},
            "Prioridade": {"select": {"name": task.priority.value}},
            "Origem": {"select": {"name": task.origin.value}},
            "Municipio": text(task.municipality),
            "UF": text(task.region),
            "ResponsavelId": text(task.responsible_id),
            "ResponsavelNome": text(task.responsible_name),
            "FormacaoOrigemId": text(task.training_id),
            "ProjetoOrigemId": text(task.project_id),
            "ProjetoOrigemNome": text(task.project_name),
        }
        if task.due_date:
            properties["Prazo"] = {"date": {"start": format_iso(task.due_date)}}
        if task.trigger:
            properties["OrigemGatilho"] = {"select": {"name": task.trigger.value}}
        return properties

    @staticmethod
    def _extract_title(props: dict, property_name: str) -> str:
        title = props.get(property_name, {}).get("title", [])
        if title:
            return title[0]["text"]["content"]
        return ""

    @staticmethod
    def _extract_select(props: dict, property_name: str) -> str:
        """Extract an option name from a select or status property."""
        prop = props.get(property_name, {})
        # Handle both 'status' and 'select' property types
        option = prop.get("status") or prop.get("select") or {}
        return option.get("name", "")

    @staticmethod
    def _extract_date_range(
        props: dict, property_name: str
    ) -> tuple[datetime | None, datetime | None]:
        value = props.get(property_name, {}).get("date") or {}
        return parse_iso(value.get("start")), parse_iso(value.get("end"))

    @staticmethod
    def _extract_rich_text(props: dict, property_name: str) -> str:
        """Extract plain text from a rich_text property."""
        prop = props.get(property_name, {})
        rich_text = prop.get("rich_text", [])
        if rich_text:
            text = rich_text[0].get("text", {}).get("content", "")
            # Strip null bytes
            return text.replace("\x00", "")
        return ""


def create_store(settings: Settings) -> NotionDocumentStore:
    """Build a Notion store, letting the YAML mapping override env database ids."""
    yaml_config = CollectionConfig(settings.config_file)
    fallback = {
        "projects": settings.projects_database_id,
        "tasks": settings.tasks_database_id,
        "trainings": settings.trainings_database_id,
    }
    database_ids = {
        c: yaml_config.resolve_database_id(c) or fallback[c] for c in COLLECTIONS
    }
    return NotionDocumentStore(AsyncClient(auth=settings.notion_token), database_ids)
