"""Cross-entity aggregation of projects, tasks and trainings into dashboard views."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from formation_tracker.dates import add_days, is_before_day, start_of_day, within_days
from formation_tracker.milestones import NextMilestone, completion_ratio, next_milestone
from formation_tracker.models import (
    FOLLOW_UP_STATUSES,
    Project,
    Task,
    Training,
    TrainingStatus,
)

CRITICAL_LIST_SIZE = 5
WEEK_AHEAD_DAYS = 7


class EventKind(str, Enum):
    TRAINING_START = "training-start"
    PROJECT_MILESTONE = "project-milestone"


@dataclass(frozen=True)
class ProjectView:
    """A project enriched with its progress and task counters."""

    project: Project
    completion: float
    next_milestone: NextMilestone | None
    task_count: int = 0
    urgent_count: int = 0
    overdue_count: int = 0

    @property
    def attention_score(self) -> int:
        return self.urgent_count + self.overdue_count


@dataclass(frozen=True)
class CriticalTasks:
    urgent: list[Task] = field(default_factory=list)
    overdue: list[Task] = field(default_factory=list)


@dataclass(frozen=True)
class AgendaEvent:
    date: datetime
    title: str
    kind: EventKind
    ref_id: str


@dataclass(frozen=True)
class SummaryStats:
    open_tasks: int
    active_trainings: int
    projects: int


@dataclass(frozen=True)
class Dashboard:
    """Everything the management view renders, computed from one snapshot."""

    as_of: datetime
    projects: list[ProjectView]
    critical: CriticalTasks
    week_ahead: list[AgendaEvent]
    stats: SummaryStats
    follow_ups: list[Training]


def is_overdue(task: Task, today: datetime) -> bool:
    """A task is overdue when its due day is strictly before today."""
    return task.due_date is not None and is_before_day(task.due_date, today)


def enrich_projects(
    projects: list[Project], tasks: list[Task], today: datetime
) -> list[ProjectView]:
    """Attach completion, next milestone and task counters to each project."""
    today = start_of_day(today)
    by_project: dict[str, list[Task]] = {}
    for task in tasks:
        if task.project_id:
            by_project.setdefault(task.project_id, []).append(task)

    views = []
    for project in projects:
        related = by_project.get(project.id, [])
        views.append(
            ProjectView(
                project=project,
                completion=completion_ratio(project),
                next_milestone=next_milestone(project, today),
                task_count=len(related),
                urgent_count=sum(1 for t in related if t.is_urgent),
                overdue_count=sum(1 for t in related if is_overdue(t, today)),
            )
        )
    return views


def critical_tasks(
    tasks: list[Task], today: datetime, limit: int = CRITICAL_LIST_SIZE
) -> CriticalTasks:
    """Split open tasks into an urgent list and a disjoint overdue list."""
    today = start_of_day(today)
    open_tasks = [t for t in tasks if not t.is_done]

    # Undated urgent tasks go last
    urgent = sorted(
        (t for t in open_tasks if t.is_urgent),
        key=lambda t: (t.due_date is None, t.due_date or datetime.min),
    )
    overdue = sorted(
        (t for t in open_tasks if not t.is_urgent and is_overdue(t, today)),
        key=lambda t: t.due_date,
    )
    return CriticalTasks(urgent=urgent[:limit], overdue=overdue[:limit])


def week_ahead(
    trainings: list[Training],
    projects: list[Project],
    today: datetime,
    days: int = WEEK_AHEAD_DAYS,
) -> list[AgendaEvent]:
    """Training starts and project milestones falling in ``[today, today + days]``."""
    today = start_of_day(today)
    horizon = add_days(today, days)
    events: list[AgendaEvent] = []

    for training in trainings:
        if training.start_date and within_days(training.start_date, today, horizon):
            events.append(
                AgendaEvent(
                    date=training.start_date,
                    title=f"Início: {training.title}",
                    kind=EventKind.TRAINING_START,
                    ref_id=training.id,
                )
            )

    for project in projects:
        upcoming = next_milestone(project, today)
        if upcoming and within_days(upcoming.date, today, horizon):
            events.append(
                AgendaEvent(
                    date=upcoming.date,
                    title=f"{upcoming.name}: {project.municipality}",
                    kind=EventKind.PROJECT_MILESTONE,
                    ref_id=project.id,
                )
            )

    return sorted(events, key=lambda e: e.date)


def projects_needing_attention(views: list[ProjectView]) -> list[ProjectView]:
    """Order by urgent plus overdue count, highest first; ties keep input order."""
    return sorted(views, key=lambda v: v.attention_score, reverse=True)


def summary_stats(
    projects: list[Project], tasks: list[Task], trainings: list[Training]
) -> SummaryStats:
    return SummaryStats(
        open_tasks=sum(1 for t in tasks if not t.is_done),
        active_trainings=sum(
            1 for t in trainings if t.status == TrainingStatus.IN_TRAINING
        ),
        projects=len(projects),
    )


def follow_up_trainings(trainings: list[Training]) -> list[Training]:
    """Trainings that finished and still need reports or feedback."""
    return [t for t in trainings if t.status in FOLLOW_UP_STATUSES]


def build_dashboard(
    projects: list[Project],
    tasks: list[Task],
    trainings: list[Training],
    today: datetime,
    critical_limit: int = CRITICAL_LIST_SIZE,
    horizon_days: int = WEEK_AHEAD_DAYS,
) -> Dashboard:
    """Run every aggregation over one snapshot."""
    views = enrich_projects(projects, tasks, today)
    return Dashboard(
        as_of=today,
        projects=projects_needing_attention(views),
        critical=critical_tasks(tasks, today, critical_limit),
        week_ahead=week_ahead(trainings, projects, today, horizon_days),
        stats=summary_stats(projects, tasks, trainings),
        follow_ups=follow_up_trainings(trainings),
    )
