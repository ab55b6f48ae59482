# scheduling/costs.py
"""
Расчет стоимости задач и свертка стоимости по иерархии.
"""
from dataclasses import replace
import logging

from scheduling.calendar import task_duration
from scheduling.errors import DanglingReference
from scheduling.hierarchy import build_hierarchy, post_order
from scheduling.models import Calendar, TaskType

logger = logging.getLogger(__name__)


def calculate_task_work(task, hours_per_day=8.0, calendar=None):
    """
    Трудозатраты задачи в часах: explicit effort, else duration x hours per day.

    Without an explicit duration the duration is derived from start/end in
    ``calendar`` (the standard calendar when omitted).
    """
    if task.effort is not None and task.effort > 0:
        return task.effort
    if task.type == TaskType.MILESTONE:
        return 0.0
    return task_duration(task, calendar or Calendar()) * hours_per_day


def calculate_task_cost(task, resources_by_id, hours_per_day=8.0, calendar=None):
    """
    Рассчитывает стоимость одной задачи.

    Cost = sum over assignments of work x allocation x rate, plus fixed cost.

    Args:
        task: Задача
        resources_by_id: Словарь {resource_id: Resource}
        hours_per_day: Рабочих часов в дне
        calendar: Календарь для длительности по датам

    Raises:
        DanglingReference: assignment to an unknown resource
    """
    work = calculate_task_work(task, hours_per_day, calendar)
    resource_cost = 0.0
    for assignment in task.resources:
        resource = resources_by_id.get(assignment.resource_id)
        if resource is None:
            raise DanglingReference("resource", assignment.resource_id, task.id)
        resource_cost += work * (assignment.allocation / 100.0) * resource.rate
    return resource_cost + (task.fixed_cost or 0.0)


def rollup_costs(tasks, resources, hours_per_day=8.0, calendar=None):
    """
    Рассчитывает стоимость всех задач и сворачивает ее по иерархии.

    Parents get the sum of their children plus their own fixed cost; resource
    assignments on a parent are ignored. Every task is visited once.

    Returns:
        Новый список задач с заполненным полем cost
    """
    resources_by_id = {resource.id: resource for resource in resources}
    tasks_by_id = {task.id: task for task in tasks}
    hierarchy = build_hierarchy(tasks)

    costs = {}
    for task_id in post_order(hierarchy):
        task = tasks_by_id[task_id]
        children = hierarchy.children.get(task_id)
        if children:
            costs[task_id] = sum(costs[child_id] for child_id in children) + (task.fixed_cost or 0.0)
        else:
            costs[task_id] = calculate_task_cost(task, resources_by_id, hours_per_day, calendar)

    logger.debug(f"Стоимость рассчитана для {len(costs)} задач")
    return [replace(task, cost=costs[task.id]) for task in tasks]


def project_cost(tasks, resources, hours_per_day=8.0, calendar=None):
    """Общая стоимость проекта: сумма свернутых стоимостей корневых задач."""
    rolled = {task.id: task.cost for task in rollup_costs(tasks, resources, hours_per_day, calendar)}
    hierarchy = build_hierarchy(tasks)
    return sum(rolled[root_id] for root_id in hierarchy.roots)
