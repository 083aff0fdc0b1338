"""Completion and next-milestone derivation for implementation projects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from formation_tracker.dates import start_of_today
from formation_tracker.models import (
    MILESTONE_KEYS,
    MilestoneKind,
    MilestoneSlot,
    Project,
    milestone_kind,
    milestone_name,
)


@dataclass(frozen=True)
class Milestone:
    """A project slot together with its position in the fixed schedule."""

    key: str
    name: str
    kind: MilestoneKind
    slot: MilestoneSlot

    @property
    def date(self) -> datetime | None:
        return self.slot.start

    @property
    def completed(self) -> bool:
        return self.slot.completed


@dataclass(frozen=True)
class NextMilestone:
    name: str
    date: datetime


def project_milestones(project: Project) -> list[Milestone]:
    """Return the project's existing slots in schedule order."""
    return [
        Milestone(
            key=key,
            name=milestone_name(key),
            kind=milestone_kind(key),
            slot=project.slots[key],
        )
        for key in MILESTONE_KEYS
        if key in project.slots
    ]


def completion_ratio(project: Project) -> float:
    """Percentage of slots marked completed, scheduled or not."""
    milestones = project_milestones(project)
    if not milestones:
        return 0.0
    completed = sum(1 for m in milestones if m.completed)
    return 100 * completed / len(milestones)


def next_milestone(
    project: Project, as_of: datetime | None = None
) -> NextMilestone | None:
    """Earliest scheduled, not completed milestone dated on or after ``as_of``.

    ``as_of`` defaults to the start of today. Equal dates resolve to the
    slot that comes first in schedule order.
    """
    if as_of is None:
        as_of = start_of_today()

    upcoming = [
        m
        for m in project_milestones(project)
        if m.slot.scheduled and not m.completed and m.date >= as_of
    ]
    if not upcoming:
        return None

    # sorted() is stable, so schedule order breaks ties
    first = sorted(upcoming, key=lambda m: m.date)[0]
    return NextMilestone(name=first.name, date=first.date)
