# scheduling/engine.py
"""
Точка входа движка планирования.

All functions are pure: they read the given inputs and return new task
objects. Callers own the project state and must serialize concurrent edits.
"""
from dataclasses import dataclass
from typing import Dict
import logging

from scheduling import leveling, costs, evm, wbs
from scheduling.network import calculate_network_parameters, ScheduleResult

logger = logging.getLogger(__name__)

rollup_costs = costs.rollup_costs
project_cost = costs.project_cost
compute_evm = evm.compute_evm
assign_wbs = wbs.assign_wbs
level_resources = leveling.level_resources


def recalculate(tasks, dependencies, calendar, project_end=None, project_start=None,
                calendars=None, honor_task_starts=False):
    """
    Пересчитывает сетевую модель.

    Returns:
        ScheduleResult: tasks with early/late dates, slack and critical flag, plus
        the critical path as an ordered list of task ids
    """
    return calculate_network_parameters(
        tasks, dependencies, calendar,
        project_start=project_start,
        project_end=project_end,
        calendars=calendars,
        honor_task_starts=honor_task_starts,
    )


@dataclass
class LeveledSchedule:
    """Результат выравнивания с обязательным пересчетом сетевой модели."""
    leveling: leveling.LevelingResult
    schedule: ScheduleResult


def level_and_recalculate(tasks, dependencies, calendar, project_start=None, project_end=None,
                          calendars=None, respect_priorities=True):
    """
    Выравнивает ресурсы и пересчитывает сетевую модель.

    The recalculation honors the leveled start dates so slack and the critical
    flag reflect the shifted tasks.
    """
    leveled = level_resources(tasks, respect_priorities=respect_priorities, calendar=calendar)
    if project_start is None:
        starts = [task.start for task in tasks if task.start is not None]
        project_start = min(starts) if starts else None
    schedule = recalculate(leveled.tasks, dependencies, calendar, project_end=project_end,
                           project_start=project_start, calendars=calendars, honor_task_starts=True)
    return LeveledSchedule(leveling=leveled, schedule=schedule)


@dataclass
class ProjectReport:
    """Полный расчет проекта."""
    schedule: ScheduleResult
    wbs_codes: Dict[str, str]
    total_cost: float


def run_schedule(project, hours_per_day=None):
    """
    Выполняет полный расчет проекта: network, costs, WBS.

    Args:
        project: ProjectData
        hours_per_day: Рабочих часов в дне для стоимости (defaults to the project calendar)

    Returns:
        ProjectReport
    """
    hours_per_day = hours_per_day or project.calendar.hours_per_day
    schedule = recalculate(project.tasks, project.dependencies, project.calendar,
                           project_end=project.end_date, project_start=project.start_date,
                           calendars=project.calendars)
    costed = rollup_costs(schedule.tasks, project.resources, hours_per_day, project.calendar)
    schedule.tasks = costed
    total = project_cost(project.tasks, project.resources, hours_per_day, project.calendar)
    codes = assign_wbs(project.tasks)
    logger.info(f"Проект '{project.name}': {len(costed)} задач, стоимость {total:.2f}")
    return ProjectReport(schedule=schedule, wbs_codes=codes, total_cost=total)
