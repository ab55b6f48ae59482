# scheduling/baseline.py
"""
Базовые планы: snapshot capture and variance against a snapshot.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import logging
import uuid

from scheduling.calendar import working_days_between
from scheduling.hierarchy import build_hierarchy
from scheduling.models import Baseline, Calendar, TaskBaseline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskVariance:
    """Отклонение задачи от базового плана. Date variances are in calendar days."""
    task_id: str
    start_variance: Optional[float]
    end_variance: Optional[float]
    duration_variance: float
    cost_variance: float
    progress_variance: float


@dataclass(frozen=True)
class ProjectVariance:
    """Отклонение проекта от базового плана."""
    baseline_name: str
    start_variance: Optional[float]
    end_variance: Optional[float]
    total_cost_variance: float


def _days(later, earlier):
    if later is None or earlier is None:
        return None
    return (later - earlier).total_seconds() / 86400


def scheduled_span(task):
    """Рассчитанные даты задачи, а при их отсутствии заданные вручную."""
    start = task.early_start if task.early_start is not None else task.start
    end = task.early_finish if task.early_finish is not None else task.end
    return start, end


def _duration(task, start, end, calendar):
    if task.duration is not None:
        return task.duration
    if start is None or end is None:
        return None
    return working_days_between(calendar, start, end)


def _total_cost(tasks):
    hierarchy = build_hierarchy(tasks)
    costs = {task.id: task.cost or 0.0 for task in tasks}
    return sum(costs[root_id] for root_id in hierarchy.roots)


def create_baseline(tasks, name, project_start=None, project_end=None, description="",
                    baseline_id=None, saved_at=None, calendar=None):
    """
    Создает базовый план из текущего состояния задач.

    Dates are the scheduled ones (early start / early finish) when the network
    has been calculated, otherwise the task's own start and end.

    Args:
        tasks: Задачи проекта (cost expected to be rolled up already)
        name: Название базового плана
        project_start: Дата начала проекта (defaults to the earliest task start)
        project_end: Дата окончания проекта (defaults to the latest task end)
        calendar: Календарь для длительности задач, заданных только датами

    Returns:
        Baseline
    """
    calendar = calendar or Calendar()
    entries = []
    for task in tasks:
        start, end = scheduled_span(task)
        entries.append(TaskBaseline(
            task_id=task.id,
            start=start,
            end=end,
            duration=_duration(task, start, end, calendar),
            cost=task.cost,
            progress=task.progress,
            work=task.effort,
        ))
    entries = tuple(entries)

    if project_start is None:
        project_start = min((entry.start for entry in entries if entry.start is not None), default=None)
    if project_end is None:
        project_end = max((entry.end for entry in entries if entry.end is not None), default=None)

    baseline = Baseline(
        id=baseline_id or f"BASELINE-{uuid.uuid4().hex[:8]}",
        name=name,
        saved_at=saved_at or datetime.now(),
        tasks=entries,
        project_start=project_start,
        project_end=project_end,
        total_cost=_total_cost(tasks),
        description=description,
    )
    logger.info(f"Сохранен базовый план '{name}': {len(entries)} задач, стоимость {baseline.total_cost:.2f}")
    return baseline


def task_variance(task, baseline):
    """
    Рассчитывает отклонение задачи от базового плана.

    Returns:
        TaskVariance или None, если задачи нет в базовом плане
    """
    if baseline is None:
        return None
    entry = baseline.for_task(task.id)
    if entry is None:
        return None

    start, end = scheduled_span(task)
    return TaskVariance(
        task_id=task.id,
        start_variance=_days(start, entry.start),
        end_variance=_days(end, entry.end),
        duration_variance=(task.duration or 0.0) - (entry.duration or 0.0),
        cost_variance=(task.cost or 0.0) - (entry.cost or 0.0),
        progress_variance=(task.progress or 0.0) - (entry.progress or 0.0),
    )


def project_variance(tasks, baseline, project_start=None, project_end=None):
    """Рассчитывает отклонение проекта от базового плана."""
    spans = [scheduled_span(task) for task in tasks]
    if project_start is None:
        project_start = min((start for start, _ in spans if start is not None), default=None)
    if project_end is None:
        project_end = max((end for _, end in spans if end is not None), default=None)

    return ProjectVariance(
        baseline_name=baseline.name,
        start_variance=_days(project_start, baseline.project_start),
        end_variance=_days(project_end, baseline.project_end),
        total_cost_variance=_total_cost(tasks) - baseline.total_cost,
    )
