# scheduling/leveling.py
"""
Выравнивание ресурсов.

Single-sweep heuristic: for every resource the assigned tasks are walked in
start order and a task overlapping its immediate predecessor in that order is
pushed to the first working instant after the predecessor ends, keeping
its working duration. The sweep does not look further
than the next task and does not respect dependencies of the shifted task, so
callers must re-run the network calculation afterwards
(``scheduling.engine.level_and_recalculate`` does both).
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List
import logging

from scheduling.calendar import add_working_units, snap_forward, working_days_between, working_units_between
from scheduling.models import Calendar, TaskType

logger = logging.getLogger(__name__)


@dataclass
class LevelingChange:
    """Сдвиг одной задачи."""
    task_id: str
    resource_id: str
    original_start: datetime
    original_end: datetime
    new_start: datetime
    new_end: datetime
    delay: float  # working days
    reason: str = "Resource overallocation"


@dataclass
class LevelingResult:
    """Результат выравнивания ресурсов."""
    tasks: list
    moved_count: int = 0
    total_delay: float = 0.0
    changes: List[LevelingChange] = field(default_factory=list)


def group_tasks_by_resource(tasks):
    """
    Группирует задачи по назначенным ресурсам.

    Only leaf tasks with both dates take part; a task assigned twice to the same
    resource appears once in that resource's list.
    """
    tasks_by_resource = {}
    for task in tasks:
        if task.type != TaskType.LEAF or task.start is None or task.end is None:
            continue
        for assignment in task.resources:
            resource_tasks = tasks_by_resource.setdefault(assignment.resource_id, [])
            if task.id not in resource_tasks:
                resource_tasks.append(task.id)
    return tasks_by_resource


def _sort_key(task, respect_priorities):
    priority = -int(task.priority) if respect_priorities else 0
    return task.start, priority, str(task.id)


def level_resources(tasks, respect_priorities=True, calendar=None):
    """
    Устраняет пересечения задач, использующих один ресурс.

    Args:
        tasks: Список задач
        respect_priorities: Among tasks with the same start, higher priority goes first
        calendar: Calendar used to measure the delay in working days

    Returns:
        LevelingResult; unmoved tasks are returned as the same objects
    """
    calendar = calendar or Calendar()
    current = {task.id: task for task in tasks}
    tasks_by_resource = group_tasks_by_resource(tasks)

    changes = []
    moved_ids = set()
    total_delay = 0.0

    for resource_id in sorted(tasks_by_resource, key=str):
        resource_tasks = sorted((current[task_id] for task_id in tasks_by_resource[resource_id]),
                                key=lambda t: _sort_key(t, respect_priorities))

        for index in range(len(resource_tasks) - 1):
            # Берем актуальные даты: задача могла сдвинуться на предыдущем шаге
            first = current[resource_tasks[index].id]
            second = current[resource_tasks[index + 1].id]

            if first.end <= second.start:
                continue

            # Длительность сохраняется в рабочих часах, не в календарном времени
            work_units = working_units_between(calendar, second.start, second.end)
            new_start = snap_forward(calendar, first.end)
            new_end = add_working_units(calendar, new_start, work_units)
            delay = working_days_between(calendar, second.start, new_start)

            changes.append(LevelingChange(
                task_id=second.id,
                resource_id=resource_id,
                original_start=second.start,
                original_end=second.end,
                new_start=new_start,
                new_end=new_end,
                delay=delay,
            ))
            current[second.id] = replace(second, start=new_start, end=new_end)
            moved_ids.add(second.id)
            total_delay += delay
            logger.info(f"Task {second.id} moved from {second.start} to {new_start} (resource {resource_id})")

    leveled = [current[task.id] for task in tasks]
    logger.info(f"Выравнивание завершено: сдвинуто задач {len(moved_ids)}, задержка {total_delay:.2f} дн.")
    return LevelingResult(tasks=leveled, moved_count=len(moved_ids), total_delay=total_delay, changes=changes)


def find_overallocations(tasks):
    """
    Находит пересекающиеся пары задач на одном ресурсе.

    Returns:
        Список кортежей (resource_id, first_task_id, second_task_id)
    """
    tasks_by_id = {task.id: task for task in tasks}
    overlaps = []
    for resource_id, task_ids in sorted(group_tasks_by_resource(tasks).items(), key=lambda item: str(item[0])):
        resource_tasks = sorted((tasks_by_id[task_id] for task_id in task_ids), key=lambda t: (t.start, str(t.id)))
        for index, first in enumerate(resource_tasks):
            for second in resource_tasks[index + 1:]:
                if second.start >= first.end:
                    break
                overlaps.append((resource_id, first.id, second.id))
    return overlaps
