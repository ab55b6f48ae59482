"""Tests for baselines and variance."""

import dataclasses
from datetime import datetime

import pytest

from conftest import MONDAY
from scheduling.baseline import create_baseline, project_variance, task_variance
from scheduling.models import Task


@pytest.fixture
def planned():
    return [
        Task(id="P", cost=1500.0, start=MONDAY, end=datetime(2024, 1, 12, 17, 0)),
        Task(id="A", parent_id="P", duration=3, cost=1000.0, start=MONDAY, end=datetime(2024, 1, 10, 17, 0)),
        Task(id="B", parent_id="P", duration=2, cost=500.0, start=datetime(2024, 1, 11, 8, 0),
             end=datetime(2024, 1, 12, 17, 0)),
    ]


class TestCreateBaseline:
    def test_snapshot(self, planned):
        baseline = create_baseline(planned, "Initial", baseline_id="BASELINE-test")
        assert baseline.id == "BASELINE-test"
        assert len(baseline.tasks) == 3
        assert baseline.total_cost == pytest.approx(1500)
        assert baseline.project_start == MONDAY
        assert baseline.project_end == datetime(2024, 1, 12, 17, 0)
        assert baseline.for_task("A").cost == 1000.0
        assert baseline.for_task("ghost") is None

    def test_generated_id(self, planned):
        assert create_baseline(planned, "Initial").id.startswith("BASELINE-")

    def test_baseline_is_frozen(self, planned):
        baseline = create_baseline(planned, "Initial")
        with pytest.raises(dataclasses.FrozenInstanceError):
            baseline.name = "Changed"
        planned[1].cost = 2000.0
        assert baseline.for_task("A").cost == 1000.0


class TestVariance:
    def test_task_variance(self, planned):
        baseline = create_baseline(planned, "Initial")
        moved = dataclasses.replace(planned[2], start=datetime(2024, 1, 12, 8, 0),
                                    end=datetime(2024, 1, 15, 17, 0), cost=600.0, progress=10.0)
        variance = task_variance(moved, baseline)
        assert variance.start_variance == pytest.approx(1)
        assert variance.end_variance == pytest.approx(3)
        assert variance.cost_variance == pytest.approx(100)
        assert variance.progress_variance == pytest.approx(10)

    def test_unknown_task(self, planned):
        baseline = create_baseline(planned, "Initial")
        assert task_variance(Task(id="new"), baseline) is None

    def test_project_variance(self, planned):
        baseline = create_baseline(planned, "Initial")
        current = [dataclasses.replace(planned[0], cost=1700.0, end=datetime(2024, 1, 15, 17, 0))] + planned[1:]
        variance = project_variance(current, baseline)
        assert variance.baseline_name == "Initial"
        assert variance.start_variance == pytest.approx(0)
        assert variance.end_variance == pytest.approx(3)
        assert variance.total_cost_variance == pytest.approx(200)
