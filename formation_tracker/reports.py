"""Grouping of projects and activities for reports and spreadsheet export."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from formation_tracker.milestones import project_milestones
from formation_tracker.models import MilestoneKind, Project

UNDATED = "undated"

DONE_LABEL = "done"
PENDING_LABEL = "pending"


@dataclass
class YearGroup:
    """Projects created in one calendar year, or the undated bucket."""

    year: int | None
    projects: list[Project] = field(default_factory=list)

    @property
    def label(self) -> str:
        return str(self.year) if self.year is not None else UNDATED


@dataclass(frozen=True)
class ExportRow:
    project_id: str
    municipality: str
    region: str
    milestone: str
    start: datetime | None
    end: datetime | None
    status: str


@dataclass
class CompletionSplit:
    done: list[ExportRow] = field(default_factory=list)
    pending: list[ExportRow] = field(default_factory=list)


@dataclass(frozen=True)
class Activity:
    """A dated event on a project's calendar."""

    date: datetime
    municipality: str
    region: str
    activity: str
    notes: str = ""
    end_date: datetime | None = None


@dataclass
class MonthGroup:
    year: int
    month: int
    activities: list[Activity] = field(default_factory=list)


def group_by_year(projects: list[Project]) -> list[YearGroup]:
    """Bucket projects by creation year, most recent first, undated last."""
    groups: dict[int | None, YearGroup] = {}
    for project in projects:
        year = project.created_at.year if project.created_at else None
        groups.setdefault(year, YearGroup(year=year)).projects.append(project)

    dated = sorted((k for k in groups if k is not None), reverse=True)
    ordered = [groups[year] for year in dated]
    if None in groups:
        ordered.append(groups[None])
    return ordered


def flatten_groups(groups: list[YearGroup]) -> list[Project]:
    return [project for group in groups for project in group.projects]


def export_rows(projects: list[Project]) -> list[ExportRow]:
    """One row per project milestone, in schedule order."""
    rows = []
    for project in projects:
        for milestone in project_milestones(project):
            rows.append(
                ExportRow(
                    project_id=project.id,
                    municipality=project.municipality,
                    region=project.region,
                    milestone=milestone.name,
                    start=milestone.slot.start,
                    end=milestone.slot.end,
                    status=DONE_LABEL if milestone.completed else PENDING_LABEL,
                )
            )
    return rows


def split_by_completion(rows: list[ExportRow]) -> CompletionSplit:
    split = CompletionSplit()
    for row in rows:
        if row.status == DONE_LABEL:
            split.done.append(row)
        else:
            split.pending.append(row)
    return split


def project_activities(project: Project) -> list[Activity]:
    """Dated activities of a project: implantation, migration and scheduled milestones."""
    activities = []
    if project.implantation_date:
        diagnostic = project.slots.get("diagnostica")
        activities.append(
            Activity(
                date=project.implantation_date,
                municipality=project.municipality,
                region=project.region,
                activity="Implantação",
                notes=diagnostic.details if diagnostic else "",
            )
        )
    if project.migration_date:
        activities.append(
            Activity(
                date=project.migration_date,
                municipality=project.municipality,
                region=project.region,
                activity="Migração de Dados",
            )
        )
    for milestone in project_milestones(project):
        if milestone.date is None:
            continue
        activities.append(
            Activity(
                date=milestone.date,
                end_date=(
                    None
                    if milestone.kind is MilestoneKind.DIAGNOSTIC
                    else milestone.slot.end
                ),
                municipality=project.municipality,
                region=project.region,
                activity=milestone.name,
                notes=milestone.slot.details,
            )
        )
    return activities


def activities_by_month(projects: list[Project]) -> list[MonthGroup]:
    """All dated activities sorted by date and bucketed by calendar month."""
    activities = sorted(
        (a for p in projects for a in project_activities(p)), key=lambda a: a.date
    )
    groups: dict[tuple[int, int], MonthGroup] = {}
    for activity in activities:
        key = (activity.date.year, activity.date.month)
        if key not in groups:
            groups[key] = MonthGroup(year=key[0], month=key[1])
        groups[key].activities.append(activity)
    return [groups[key] for key in sorted(groups)]


def _format_period(activity: Activity) -> str:
    if activity.end_date:
        return f"{activity.date:%d/%m} a {activity.end_date:%d/%m}"
    return f"{activity.date:%d/%m}"


def activity_sheet_rows(activities: list[Activity]) -> list[dict[str, str]]:
    """Spreadsheet-ready rows for one month of activities."""
    return [
        {
            "Data/Período": _format_period(a),
            "Município (UF)": f"{a.municipality} ({a.region})",
            "Atividade": a.activity,
            "Observações": a.notes,
        }
        for a in activities
    ]
