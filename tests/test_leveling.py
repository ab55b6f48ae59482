"""Tests for resource leveling."""

from datetime import datetime

import pytest

from conftest import MONDAY
from scheduling.engine import level_and_recalculate
from scheduling.calendar import working_days_between
from scheduling.leveling import find_overallocations, group_tasks_by_resource, level_resources
from scheduling.models import ResourceAssignment, Task, TaskPriority, TaskType


def by_id(tasks):
    return {task.id: task for task in tasks}


class TestLevelResources:
    def test_shared_resource_moves_second_task(self, shared_resource_tasks):
        result = level_resources(shared_resource_tasks)
        leveled = by_id(result.tasks)

        assert result.moved_count == 1
        assert leveled["A"] is shared_resource_tasks[0]
        # Среда 17:00 - конец рабочего дня, задача начинается в четверг утром
        assert leveled["B"].start == datetime(2024, 1, 11, 8, 0)
        assert leveled["B"].end == datetime(2024, 1, 15, 17, 0)
        assert result.total_delay == pytest.approx(3)
        assert result.changes[0].task_id == "B"
        assert result.changes[0].resource_id == "dev"

    def test_input_is_not_mutated(self, shared_resource_tasks):
        level_resources(shared_resource_tasks)
        assert shared_resource_tasks[1].start == MONDAY

    def test_no_overlap_returns_same_tasks(self):
        tasks = [
            Task(id="A", start=MONDAY, end=datetime(2024, 1, 8, 17, 0), resources=[ResourceAssignment("dev")]),
            Task(id="B", start=datetime(2024, 1, 9, 8, 0), end=datetime(2024, 1, 9, 17, 0),
                 resources=[ResourceAssignment("dev")]),
        ]
        result = level_resources(tasks)
        assert result.moved_count == 0
        assert result.total_delay == 0
        assert all(a is b for a, b in zip(result.tasks, tasks))

    def test_touching_tasks_do_not_overlap(self):
        tasks = [
            Task(id="A", start=MONDAY, end=datetime(2024, 1, 8, 17, 0), resources=[ResourceAssignment("dev")]),
            Task(id="B", start=datetime(2024, 1, 8, 17, 0), end=datetime(2024, 1, 9, 17, 0),
                 resources=[ResourceAssignment("dev")]),
        ]
        assert level_resources(tasks).moved_count == 0

    def test_priority_decides_order(self, shared_resource_tasks):
        shared_resource_tasks[1].priority = TaskPriority.HIGH
        result = level_resources(shared_resource_tasks)
        assert result.changes[0].task_id == "A"

        ignored = level_resources(shared_resource_tasks, respect_priorities=False)
        assert ignored.changes[0].task_id == "B"

    def test_single_sweep_pushes_chain(self):
        day_end = datetime(2024, 1, 8, 17, 0)
        tasks = [Task(id=task_id, start=MONDAY, end=day_end, resources=[ResourceAssignment("dev")])
                 for task_id in ("A", "B", "C")]
        result = level_resources(tasks)
        leveled = by_id(result.tasks)
        assert result.moved_count == 2
        assert leveled["B"].start == datetime(2024, 1, 9, 8, 0)
        assert leveled["C"].start == datetime(2024, 1, 10, 8, 0)
        assert leveled["C"].end == datetime(2024, 1, 10, 17, 0)
        assert result.total_delay == pytest.approx(1 + 2)

    def test_task_counted_once_across_resources(self, shared_resource_tasks):
        for task in shared_resource_tasks:
            task.resources.append(ResourceAssignment("qa"))
        result = level_resources(shared_resource_tasks)
        assert result.moved_count == 1

    def test_only_leaf_tasks_take_part(self, shared_resource_tasks):
        shared_resource_tasks[1].type = TaskType.MILESTONE
        assert group_tasks_by_resource(shared_resource_tasks) == {"dev": ["A"]}
        assert level_resources(shared_resource_tasks).moved_count == 0


    def test_working_duration_is_kept(self, calendar):
        # Длительность задана только датами
        end = datetime(2024, 1, 10, 17, 0)
        tasks = [Task(id=task_id, start=MONDAY, end=end, resources=[ResourceAssignment("dev")])
                 for task_id in ("A", "B")]
        leveled = by_id(level_resources(tasks, calendar=calendar).tasks)
        before = working_days_between(calendar, tasks[1].start, tasks[1].end)
        after = working_days_between(calendar, leveled["B"].start, leveled["B"].end)
        assert after == pytest.approx(before)
        assert after == pytest.approx(3)


class TestOverallocations:
    def test_reports_overlapping_pairs(self, shared_resource_tasks):
        assert find_overallocations(shared_resource_tasks) == [("dev", "A", "B")]
        assert find_overallocations(level_resources(shared_resource_tasks).tasks) == []


class TestLevelAndRecalculate:
    def test_schedule_reflects_shifted_start(self, shared_resource_tasks, calendar):
        leveled = level_and_recalculate(shared_resource_tasks, [], calendar)
        scheduled = by_id(leveled.schedule.tasks)

        assert leveled.leveling.moved_count == 1
        assert scheduled["B"].early_start == datetime(2024, 1, 11, 8, 0)
        assert scheduled["B"].early_finish == datetime(2024, 1, 15, 17, 0)
        assert scheduled["B"].is_critical
        assert not scheduled["A"].is_critical
        assert scheduled["A"].slack == pytest.approx(3)

    def test_derived_duration_survives_recalculation(self, calendar):
        end = datetime(2024, 1, 10, 17, 0)
        tasks = [Task(id=task_id, start=MONDAY, end=end, resources=[ResourceAssignment("dev")])
                 for task_id in ("A", "B")]
        leveled = level_and_recalculate(tasks, [], calendar)
        scheduled = by_id(leveled.schedule.tasks)["B"]
        assert scheduled.early_start == datetime(2024, 1, 11, 8, 0)
        assert scheduled.early_finish == datetime(2024, 1, 15, 17, 0)
        assert working_days_between(calendar, scheduled.early_start, scheduled.early_finish) == pytest.approx(3)
