"""Tests for formation_tracker.milestones."""

from datetime import datetime, timedelta

from formation_tracker.milestones import (
    completion_ratio,
    next_milestone,
    project_milestones,
)
from formation_tracker.models import MilestoneSlot, Project

TODAY = datetime(2025, 3, 10)


def _project(**slots: MilestoneSlot) -> Project:
    return Project(id="p-1", municipality="Sobral", region="CE", slots=slots)


class TestProjectMilestones:
    def test_schedule_order_ignores_insertion_order(self):
        project = _project(d1=MilestoneSlot(), s1=MilestoneSlot(), diagnostica=MilestoneSlot())
        assert [m.key for m in project_milestones(project)] == ["diagnostica", "s1", "d1"]

    def test_missing_slots_are_skipped(self):
        assert project_milestones(_project()) == []


class TestCompletionRatio:
    def test_no_slots_is_zero(self):
        assert completion_ratio(_project()) == 0

    def test_unscheduled_slots_count_in_denominator(self):
        project = _project(
            diagnostica=MilestoneSlot(start=TODAY, completed=True),
            s1=MilestoneSlot(),
            s2=MilestoneSlot(),
            s3=MilestoneSlot(),
        )
        assert completion_ratio(project) == 25

    def test_vacuous_completion_without_dates(self):
        project = _project(s1=MilestoneSlot(completed=True), s2=MilestoneSlot(completed=True))
        assert completion_ratio(project) == 100

    def test_all_unscheduled_and_open_is_zero(self):
        project = _project(s1=MilestoneSlot(), d1=MilestoneSlot())
        assert completion_ratio(project) == 0


class TestNextMilestone:
    def test_scenario_yesterday_open_and_tomorrow_open(self):
        project = _project(
            diagnostica=MilestoneSlot(start=TODAY - timedelta(days=1)),
            s1=MilestoneSlot(start=TODAY + timedelta(days=1)),
            s2=MilestoneSlot(),
            s3=MilestoneSlot(),
            s4=MilestoneSlot(),
        )
        assert completion_ratio(project) == 0
        upcoming = next_milestone(project, TODAY)
        assert upcoming.name == "Simulado 1"
        assert upcoming.date == TODAY + timedelta(days=1)

    def test_completed_milestones_are_skipped(self):
        project = _project(
            s1=MilestoneSlot(start=TODAY + timedelta(days=1), completed=True),
            d1=MilestoneSlot(start=TODAY + timedelta(days=5)),
        )
        assert next_milestone(project, TODAY).name == "Devolutiva 1"

    def test_milestone_on_as_of_is_included(self):
        project = _project(s2=MilestoneSlot(start=TODAY))
        assert next_milestone(project, TODAY).date == TODAY

    def test_none_when_nothing_qualifies(self):
        project = _project(
            diagnostica=MilestoneSlot(start=TODAY - timedelta(days=3)),
            s1=MilestoneSlot(),
        )
        assert next_milestone(project, TODAY) is None

    def test_tie_goes_to_schedule_order(self):
        day = TODAY + timedelta(days=2)
        project = _project(
            d1=MilestoneSlot(start=day),
            s4=MilestoneSlot(start=day),
            diagnostica=MilestoneSlot(start=day),
        )
        assert next_milestone(project, TODAY).name == "Avaliação Diagnóstica"

    def test_earliest_date_wins(self):
        project = _project(
            s1=MilestoneSlot(start=TODAY + timedelta(days=9)),
            d3=MilestoneSlot(start=TODAY + timedelta(days=4)),
        )
        assert next_milestone(project, TODAY).name == "Devolutiva 3"
