"""Shared test fixtures for the scheduler tests."""

import os
import tempfile
from datetime import datetime

import pytest

# База данных для тестов выбирается до импорта database.operations
_DB_DIR = tempfile.mkdtemp(prefix="scheduler-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}")
os.environ.setdefault("LOG_FILE", "")

from scheduling.models import Calendar, Dependency, DependencyKind, Resource, ResourceAssignment, Task

# Понедельник
MONDAY = datetime(2024, 1, 8, 8, 0)


def make_task(task_id, duration=1, start=None, **kwargs):
    """Leaf task with a duration in working days."""
    return Task(id=task_id, name=f"Task {task_id}", duration=duration, start=start, **kwargs)


def fs(dep_id, from_id, to_id, lag=0.0, kind=DependencyKind.FINISH_TO_START):
    return Dependency(id=dep_id, from_task_id=from_id, to_task_id=to_id, kind=kind, lag=lag)


@pytest.fixture
def calendar():
    """Mon-Fri, 08:00-12:00 and 13:00-17:00."""
    return Calendar()


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def chain_project():
    """A -> B (FS) -> C (FS, lag 2 days); A starts Monday with 3 days."""
    tasks = [
        make_task("A", 3, start=MONDAY),
        make_task("B", 2),
        make_task("C", 1),
    ]
    dependencies = [fs("d1", "A", "B"), fs("d2", "B", "C", lag=2)]
    return tasks, dependencies


@pytest.fixture
def resources():
    return [
        Resource(id="dev", name="Developer", rate=50.0),
        Resource(id="qa", name="Tester", rate=30.0),
    ]


@pytest.fixture
def shared_resource_tasks():
    """Two tasks on the same resource, both Monday 08:00 - Wednesday 17:00."""
    end = datetime(2024, 1, 10, 17, 0)
    return [
        Task(id="A", name="First", start=MONDAY, end=end, duration=3,
             resources=[ResourceAssignment("dev")]),
        Task(id="B", name="Second", start=MONDAY, end=end, duration=3,
             resources=[ResourceAssignment("dev")]),
    ]


@pytest.fixture
def db():
    """Clean database schema for each test."""
    from database.models import Base
    from database.operations import engine

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
