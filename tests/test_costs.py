"""Tests for task cost and hierarchy rollup."""

from datetime import date, datetime

import pytest

from conftest import MONDAY
from scheduling.costs import calculate_task_cost, calculate_task_work, project_cost, rollup_costs
from scheduling.errors import DanglingReference
from scheduling.models import Calendar, CalendarException, Resource, ResourceAssignment, Task, TaskType


@pytest.fixture
def project_tasks():
    return [
        Task(id="P", name="Phase", fixed_cost=50.0),
        Task(id="A", duration=3, parent_id="P", fixed_cost=100.0, resources=[ResourceAssignment("dev")]),
        Task(id="B", effort=10, parent_id="P", resources=[ResourceAssignment("qa", allocation=50.0)]),
        Task(id="M", type=TaskType.MILESTONE, duration=1, fixed_cost=25.0, resources=[ResourceAssignment("dev")]),
    ]


class TestTaskCost:
    def test_work_from_duration_or_effort(self):
        assert calculate_task_work(Task(id="t", duration=2)) == 16
        assert calculate_task_work(Task(id="t", duration=2, effort=5)) == 5
        assert calculate_task_work(Task(id="t", duration=2), hours_per_day=6) == 12
        assert calculate_task_work(Task(id="m", duration=2, type=TaskType.MILESTONE)) == 0

    def test_rate_times_allocation(self, project_tasks, resources):
        resources_by_id = {r.id: r for r in resources}
        assert calculate_task_cost(project_tasks[1], resources_by_id) == pytest.approx(24 * 50 + 100)
        assert calculate_task_cost(project_tasks[2], resources_by_id) == pytest.approx(10 * 0.5 * 30)

    def test_unknown_resource(self, resources):
        task = Task(id="t", duration=1, resources=[ResourceAssignment("ghost")])
        with pytest.raises(DanglingReference):
            calculate_task_cost(task, {r.id: r for r in resources})


class TestRollup:
    def test_parent_is_sum_of_children_plus_fixed(self, project_tasks, resources):
        costs = {task.id: task.cost for task in rollup_costs(project_tasks, resources)}
        assert costs["A"] == pytest.approx(1300)
        assert costs["B"] == pytest.approx(150)
        assert costs["P"] == pytest.approx(1300 + 150 + 50)
        assert costs["M"] == pytest.approx(25)

    def test_project_cost_counts_roots_once(self, project_tasks, resources):
        assert project_cost(project_tasks, resources) == pytest.approx(1500 + 25)

    def test_input_is_not_mutated(self, project_tasks, resources):
        rollup_costs(project_tasks, resources)
        assert all(task.cost is None for task in project_tasks)

    def test_deep_hierarchy(self, resources):
        tasks = [Task(id=f"T{i:04d}", parent_id=f"T{i - 1:04d}" if i else None, fixed_cost=1.0)
                 for i in range(3000)]
        costs = {task.id: task.cost for task in rollup_costs(tasks, resources)}
        assert costs["T0000"] == pytest.approx(3000)

class TestDateDerivedWork:
    def test_duration_from_dates(self):
        task = Task(id="t", start=MONDAY, end=datetime(2024, 1, 10, 17, 0),
                    resources=[ResourceAssignment("dev")])
        assert calculate_task_work(task) == pytest.approx(24)
        costed = rollup_costs([task], [Resource(id="dev", name="Developer", rate=10.0)])
        assert costed[0].cost == pytest.approx(240)

    def test_holiday_shortens_work(self):
        task = Task(id="t", start=MONDAY, end=datetime(2024, 1, 10, 17, 0),
                    resources=[ResourceAssignment("dev")])
        holiday = Calendar(exceptions=[CalendarException(date(2024, 1, 9), date(2024, 1, 9))])
        assert calculate_task_work(task, calendar=holiday) == pytest.approx(16)
        assert project_cost([task], [Resource(id="dev", name="Developer", rate=10.0)],
                            calendar=holiday) == pytest.approx(160)
