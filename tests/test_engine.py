"""Tests for the engine facade."""

from datetime import datetime

import pytest

from conftest import MONDAY, fs, make_task
from scheduling import engine
from scheduling.models import ProjectData, ResourceAssignment, Task, TaskType


@pytest.fixture
def project(resources):
    tasks = [
        Task(id="S", name="Build", type=TaskType.SUMMARY, display_order=1),
        make_task("A", 3, start=MONDAY, parent_id="S", resources=[ResourceAssignment("dev")]),
        make_task("B", 2, parent_id="S", resources=[ResourceAssignment("qa")]),
        Task(id="M", name="Release", type=TaskType.MILESTONE, display_order=2, fixed_cost=10.0),
    ]
    dependencies = [fs("d1", "A", "B"), fs("d2", "B", "M")]
    return ProjectData(id=1, name="Demo", tasks=tasks, dependencies=dependencies, resources=resources,
                       start_date=MONDAY)


class TestRunSchedule:
    def test_full_report(self, project):
        report = engine.run_schedule(project)
        scheduled = {task.id: task for task in report.schedule.tasks}

        assert report.schedule.project_finish == datetime(2024, 1, 15, 8, 0)
        assert report.schedule.critical_path == ["A", "B", "M"]
        assert scheduled["S"].early_finish == datetime(2024, 1, 12, 17, 0)
        assert scheduled["S"].cost == pytest.approx(24 * 50 + 16 * 30)
        assert report.total_cost == pytest.approx(24 * 50 + 16 * 30 + 10)
        assert report.wbs_codes == {"S": "1", "A": "1.1", "B": "1.2", "M": "2"}

    def test_recalculate_matches_network(self, project):
        result = engine.recalculate(project.tasks, project.dependencies, project.calendar)
        assert result.order == ["A", "B", "M"]
