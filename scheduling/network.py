# scheduling/network.py
"""
Модуль для расчета параметров сетевой модели и определения критического пути
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional
import logging

from scheduling.calendar import (
    add_working_units, working_units_between, snap_forward, snap_backward, task_duration, validate_calendar
)
from scheduling.dependencies import build_dependency_index, topological_order
from scheduling.errors import DanglingReference
from scheduling.hierarchy import build_hierarchy, post_order
from scheduling.models import ConstraintType, DependencyKind, TaskType

logger = logging.getLogger(__name__)

# Slack (working days) at or below this value makes a task critical
CRITICAL_SLACK_EPSILON = 1e-6

# Max disagreement between start slack and finish slack, in working days
SLACK_AGREEMENT_TOLERANCE = 1e-6


@dataclass
class ScheduleResult:
    """Результат расчета сетевой модели."""
    tasks: list
    critical_path: List[str]
    project_start: Optional[datetime]
    project_finish: Optional[datetime]
    order: List[str]


def calculate_network_parameters(tasks, dependencies, calendar, project_start=None, project_end=None,
                                 calendars=None, honor_task_starts=False):
    """
    Рассчитывает параметры сетевой модели.

    Args:
        tasks: Список задач
        dependencies: Список зависимостей
        calendar: Календарь проекта по умолчанию
        project_start: Дата начала проекта (defaults to the earliest task start)
        project_end: Явная дата окончания проекта, used when later than the computed finish
        calendars: Словарь {calendar_id: Calendar} for task overrides
        honor_task_starts: Use each task's own start as an extra lower bound

    Returns:
        ScheduleResult with updated copies of the tasks
    """
    validate_calendar(calendar)
    calendars = calendars or {}

    if not tasks:
        logger.warning("Нет задач для расчета сетевой модели")
        return ScheduleResult(tasks=[], critical_path=[], project_start=project_start,
                              project_finish=project_end or project_start, order=[])

    tasks_by_id = {}
    for task in tasks:
        if task.id in tasks_by_id:
            raise ValueError(f"Duplicate task id {task.id}")
        tasks_by_id[task.id] = task

    if project_start is None:
        starts = [task.start for task in tasks if task.start is not None]
        if not starts:
            raise ValueError("Project start is unknown: pass project_start or give tasks start dates")
        project_start = min(starts)

    # Суммарные задачи не участвуют в проходах, их сроки собираются из детей
    hierarchy = build_hierarchy(tasks)
    summary_ids = {
        task.id for task in tasks
        if task.type == TaskType.SUMMARY or hierarchy.has_children(task.id)
    }

    scheduled_dependencies = []
    for dependency in dependencies:
        for task_id in (dependency.from_task_id, dependency.to_task_id):
            if task_id not in tasks_by_id:
                raise DanglingReference("task", task_id, dependency.id)
        if dependency.from_task_id in summary_ids or dependency.to_task_id in summary_ids:
            logger.warning(f"Dependency {dependency.id} touches a summary task and is skipped")
            continue
        scheduled_dependencies.append(dependency)

    network = create_network_model(tasks, summary_ids, calendar, calendars)
    order = topological_order([task.id for task in tasks if task.id not in summary_ids],
                              scheduled_dependencies)
    predecessors, successors = build_dependency_index(scheduled_dependencies)

    calculate_early_times(network, order, predecessors, project_start, honor_task_starts)

    project_finish = max((network[task_id]['early_finish'] for task_id in order), default=project_start)
    if project_end is not None and project_end > project_finish:
        project_finish = project_end

    calculate_late_times(network, order, successors, project_finish)
    calculate_slack(network, order)
    critical_path = identify_critical_path(network, order)
    roll_up_summary_dates(network, hierarchy, summary_ids)

    updated = []
    for task in tasks:
        node = network[task.id]
        updated.append(replace(
            task,
            early_start=node['early_start'],
            early_finish=node['early_finish'],
            late_start=node['late_start'],
            late_finish=node['late_finish'],
            slack=node['slack'],
            is_critical=node['is_critical'],
        ))

    logger.info(f"Рассчитана сетевая модель: {len(order)} задач, окончание проекта: {project_finish}")
    logger.info(f"Критический путь: {critical_path}")

    return ScheduleResult(tasks=updated, critical_path=critical_path, project_start=project_start,
                          project_finish=project_finish, order=order)


def create_network_model(tasks, summary_ids, calendar, calendars):
    """
    Создает сетевую модель на основе задач.

    Returns:
        Словарь task id -> узел сетевой модели
    """
    network = {}
    for task in tasks:
        task_calendar = calendar
        if task.calendar_id is not None:
            task_calendar = calendars.get(task.calendar_id)
            if task_calendar is None:
                logger.warning(f"Task {task.id}: unknown calendar {task.calendar_id}, using project calendar")
                task_calendar = calendar
            else:
                validate_calendar(task_calendar)

        is_summary = task.id in summary_ids
        duration_days = 0.0 if is_summary else task_duration(task, task_calendar)
        network[task.id] = {
            'task': task,
            'calendar': task_calendar,
            'is_summary': is_summary,
            'is_milestone': task.type == TaskType.MILESTONE or (not is_summary and duration_days == 0),
            'duration': duration_days * task_calendar.hours_per_day,
            'early_start': None,
            'early_finish': None,
            'late_start': None,
            'late_finish': None,
            'slack': None,
            'is_critical': False
        }
    return network


def _apply_forward_constraint(node, early_start):
    """Применяет ограничение задачи к раннему старту."""
    task = node['task']
    calendar = node['calendar']
    duration = node['duration']
    constraint = task.constraint_type
    date = task.constraint_date

    if constraint == ConstraintType.ASAP or date is None:
        return early_start

    if constraint == ConstraintType.MUST_START_ON:
        return snap_forward(calendar, date)
    if constraint == ConstraintType.MUST_FINISH_ON:
        return snap_forward(calendar, add_working_units(calendar, date, -duration))
    if constraint == ConstraintType.START_NO_EARLIER_THAN:
        return max(early_start, snap_forward(calendar, date))
    if constraint == ConstraintType.FINISH_NO_EARLIER_THAN:
        if add_working_units(calendar, early_start, duration) < date:
            return snap_forward(calendar, add_working_units(calendar, date, -duration))
    return early_start


def calculate_early_times(network, order, predecessors, project_start, honor_task_starts=False):
    """
    Рассчитывает ранние сроки начала и окончания для всех работ (прямой проход).

    Args:
        network: Сетевая модель
        order: Топологический порядок задач
        predecessors: task id -> входящие зависимости
        project_start: Дата начала проекта
        honor_task_starts: Treat each task's own start as a lower bound
    """
    for task_id in order:
        node = network[task_id]
        task = node['task']
        calendar = node['calendar']
        duration = node['duration']

        start_bound = project_start
        if honor_task_starts and task.start is not None and task.start > start_bound:
            start_bound = task.start

        for dependency in predecessors.get(task_id, []):
            predecessor = network[dependency.from_task_id]
            lag = dependency.lag * calendar.hours_per_day

            if dependency.kind == DependencyKind.FINISH_TO_START:
                bound = add_working_units(calendar, predecessor['early_finish'], lag)
            elif dependency.kind == DependencyKind.START_TO_START:
                bound = add_working_units(calendar, predecessor['early_start'], lag)
            elif dependency.kind == DependencyKind.FINISH_TO_FINISH:
                finish = add_working_units(calendar, predecessor['early_finish'], lag)
                bound = add_working_units(calendar, finish, -duration)
            else:
                finish = add_working_units(calendar, predecessor['early_start'], lag)
                bound = add_working_units(calendar, finish, -duration)

            if bound > start_bound:
                start_bound = bound

        early_start = snap_forward(calendar, start_bound)
        early_start = _apply_forward_constraint(node, early_start)

        node['early_start'] = early_start
        node['early_finish'] = add_working_units(calendar, early_start, duration)

    return network


def _apply_backward_constraint(node, late_finish):
    """
    Применяет ограничение задачи к позднему окончанию.

    Returns:
        Tuple (late_start, late_finish); late_start is None when it should be
        derived from late_finish.
    """
    task = node['task']
    calendar = node['calendar']
    duration = node['duration']
    constraint = task.constraint_type
    date = task.constraint_date

    if constraint == ConstraintType.ASAP or date is None:
        return None, late_finish

    if constraint == ConstraintType.MUST_START_ON:
        late_start = snap_forward(calendar, date)
        return late_start, add_working_units(calendar, late_start, duration)
    if constraint == ConstraintType.MUST_FINISH_ON:
        return None, date
    if constraint == ConstraintType.START_NO_LATER_THAN:
        if add_working_units(calendar, late_finish, -duration) > date:
            late_start = snap_forward(calendar, date)
            return late_start, add_working_units(calendar, late_start, duration)
    if constraint == ConstraintType.FINISH_NO_LATER_THAN:
        if late_finish > date:
            return None, snap_backward(calendar, date)
    return None, late_finish


def calculate_late_times(network, order, successors, project_finish):
    """
    Рассчитывает поздние сроки начала и окончания для всех работ (обратный проход).

    Args:
        network: Сетевая модель с ранними сроками
        order: Топологический порядок задач
        successors: task id -> исходящие зависимости
        project_finish: Дата окончания проекта
    """
    for task_id in reversed(order):
        node = network[task_id]
        calendar = node['calendar']
        duration = node['duration']

        # Для задач без последователей поздний срок окончания = окончанию проекта
        finish_bound = project_finish
        for dependency in successors.get(task_id, []):
            successor = network[dependency.to_task_id]
            successor_calendar = successor['calendar']
            lag = dependency.lag * successor_calendar.hours_per_day

            if dependency.kind == DependencyKind.FINISH_TO_START:
                bound = add_working_units(successor_calendar, successor['late_start'], -lag)
            elif dependency.kind == DependencyKind.START_TO_START:
                start = add_working_units(successor_calendar, successor['late_start'], -lag)
                bound = add_working_units(calendar, start, duration)
            elif dependency.kind == DependencyKind.FINISH_TO_FINISH:
                bound = add_working_units(successor_calendar, successor['late_finish'], -lag)
            else:
                start = add_working_units(successor_calendar, successor['late_finish'], -lag)
                bound = add_working_units(calendar, start, duration)

            if bound < finish_bound:
                finish_bound = bound

        # Веха стоит в одном рабочем моменте, как и в прямом проходе
        if node['is_milestone']:
            late_finish = snap_forward(calendar, finish_bound)
        else:
            late_finish = snap_backward(calendar, finish_bound)

        late_start, late_finish = _apply_backward_constraint(node, late_finish)
        if late_start is None:
            late_start = add_working_units(calendar, late_finish, -duration)

        node['late_start'] = late_start
        node['late_finish'] = late_finish

    return network


def calculate_slack(network, order):
    """
    Рассчитывает полный резерв времени в рабочих днях.

    Slack from the starts and from the finishes must agree; a disagreement is
    an arithmetic defect, not a schedule property.
    """
    for task_id in order:
        node = network[task_id]
        calendar = node['calendar']
        hours_per_day = calendar.hours_per_day

        start_slack = working_units_between(calendar, node['early_start'], node['late_start']) / hours_per_day
        finish_slack = working_units_between(calendar, node['early_finish'], node['late_finish']) / hours_per_day
        assert abs(start_slack - finish_slack) <= SLACK_AGREEMENT_TOLERANCE, (
            f"Task {task_id}: start slack {start_slack} != finish slack {finish_slack}")

        node['slack'] = start_slack
    return network


def identify_critical_path(network, order):
    """
    Определяет критический путь в сетевой модели.

    Returns:
        Список id критических задач, ordered by early start then topological position
    """
    position = {task_id: index for index, task_id in enumerate(order)}
    critical_tasks = []
    for task_id in order:
        node = network[task_id]
        if node['slack'] <= CRITICAL_SLACK_EPSILON:
            node['is_critical'] = True
            critical_tasks.append(task_id)

    critical_tasks.sort(key=lambda t: (network[t]['early_start'], position[t]))
    return critical_tasks


def roll_up_summary_dates(network, hierarchy, summary_ids):
    """Собирает сроки суммарных задач из сроков потомков (children before parents)."""
    for task_id in post_order(hierarchy):
        if task_id not in summary_ids:
            continue
        children = [network[child_id] for child_id in hierarchy.children.get(task_id, [])]
        node = network[task_id]
        for field_name, pick in (('early_start', min), ('early_finish', max),
                                 ('late_start', min), ('late_finish', max)):
            values = [child[field_name] for child in children if child[field_name] is not None]
            node[field_name] = pick(values) if values else None
        node['slack'] = None
        node['is_critical'] = False
    return network


def critical_chains(tasks, dependencies, max_chains=100):
    """
    Строит цепочки критических задач от начальных к конечным.

    Args:
        tasks: Задачи после расчета сетевой модели
        dependencies: Список зависимостей
        max_chains: Ограничение на количество цепочек

    Returns:
        Список цепочек (lists of task ids)
    """
    critical = {task.id: task for task in tasks if task.is_critical}
    links = {}
    has_critical_predecessor = set()
    for dependency in dependencies:
        if dependency.from_task_id in critical and dependency.to_task_id in critical:
            links.setdefault(dependency.from_task_id, []).append(dependency.to_task_id)
            has_critical_predecessor.add(dependency.to_task_id)

    starts = sorted((task_id for task_id in critical if task_id not in has_critical_predecessor),
                    key=lambda t: (critical[t].early_start, str(t)))

    chains = []
    stack = [[task_id] for task_id in reversed(starts)]
    while stack and len(chains) < max_chains:
        chain = stack.pop()
        next_ids = sorted(links.get(chain[-1], []), key=str)
        if not next_ids:
            chains.append(chain)
            continue
        for next_id in reversed(next_ids):
            stack.append(chain + [next_id])
    return chains


def get_task_dependencies_graph(tasks, dependencies):
    """
    Создает граф зависимостей между задачами для визуализации.

    Returns:
        Словарь с данными для построения графа
    """
    nodes = [{'id': task.id, 'label': task.name, 'is_critical': task.is_critical} for task in tasks]
    task_ids = {task.id for task in tasks}
    edges = [
        {'from': dependency.from_task_id, 'to': dependency.to_task_id,
         'kind': dependency.kind.value, 'lag': dependency.lag}
        for dependency in dependencies
        if dependency.from_task_id in task_ids and dependency.to_task_id in task_ids
    ]
    return {'nodes': nodes, 'edges': edges}
