# scheduling/dependencies.py
"""
Граф зависимостей: validation of new links, predecessor/successor index and
a stable topological order.
"""
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import heapq
import logging

from scheduling.errors import CyclicDependency
from scheduling.models import TaskType

logger = logging.getLogger(__name__)


class RejectionKind(str, Enum):
    """Причина отклонения изменения."""
    SELF_REFERENCE = "self_reference"
    DANGLING = "dangling"
    DUPLICATE = "duplicate"
    SUMMARY = "summary"
    CYCLE = "cycle"


@dataclass(frozen=True)
class ValidationResult:
    """Результат проверки: rejected changes are values, not exceptions."""
    accepted: bool
    reason: str = ""
    kind: Optional[RejectionKind] = None

    def __bool__(self):
        return self.accepted


def build_dependency_index(dependencies):
    """
    Создает индекс предшественников и последователей.

    Returns:
        Tuple (predecessors, successors): task id -> list of dependencies
    """
    predecessors = {}
    successors = {}
    for dependency in dependencies:
        predecessors.setdefault(dependency.to_task_id, []).append(dependency)
        successors.setdefault(dependency.from_task_id, []).append(dependency)
    return predecessors, successors


def _is_reachable(source_id, target_id, successors):
    """Проверяет достижимость target из source по направлению связей."""
    visited = {source_id}
    queue = deque([source_id])
    while queue:
        current = queue.popleft()
        if current == target_id:
            return True
        for dependency in successors.get(current, []):
            if dependency.to_task_id not in visited:
                visited.add(dependency.to_task_id)
                queue.append(dependency.to_task_id)
    return False


def validate_dependency(new_dependency, tasks, dependencies):
    """
    Проверяет новую зависимость перед добавлением.

    Args:
        new_dependency: Добавляемая зависимость
        tasks: Существующие задачи
        dependencies: Существующие зависимости

    Returns:
        ValidationResult
    """
    from_id = new_dependency.from_task_id
    to_id = new_dependency.to_task_id
    tasks_by_id = {task.id: task for task in tasks}

    if from_id == to_id:
        return ValidationResult(False, "A task cannot depend on itself", RejectionKind.SELF_REFERENCE)

    for task_id in (from_id, to_id):
        if task_id not in tasks_by_id:
            return ValidationResult(False, f"Task {task_id} does not exist", RejectionKind.DANGLING)

    # Задачи с подзадачами тоже суммарные
    parent_ids = {task.parent_id for task in tasks if task.parent_id is not None}
    for task_id in (from_id, to_id):
        if tasks_by_id[task_id].type == TaskType.SUMMARY or task_id in parent_ids:
            return ValidationResult(
                False, f"Task {task_id} is a summary task, its dates are derived", RejectionKind.SUMMARY)

    if any(dependency.key == new_dependency.key for dependency in dependencies):
        return ValidationResult(
            False, f"Dependency {from_id} -> {to_id} ({new_dependency.kind.value}) already exists",
            RejectionKind.DUPLICATE)

    # Новая связь from -> to замыкает цикл, если from достижима из to
    _, successors = build_dependency_index(dependencies)
    if _is_reachable(to_id, from_id, successors):
        return ValidationResult(
            False, f"Dependency {from_id} -> {to_id} would create a cycle", RejectionKind.CYCLE)

    return ValidationResult(True)


def add_dependency(new_dependency, tasks, dependencies):
    """
    Добавляет зависимость, если она проходит проверку.

    Returns:
        Tuple (ValidationResult, new dependency list). On rejection the list is
        the unchanged input.
    """
    result = validate_dependency(new_dependency, tasks, dependencies)
    if not result.accepted:
        logger.info(f"Dependency {new_dependency.id} rejected: {result.reason}")
        return result, dependencies
    return result, list(dependencies) + [new_dependency]


def topological_order(task_ids, dependencies):
    """
    Сортирует задачи в топологическом порядке (с учетом зависимостей).

    Ties are broken by task id so the same input always yields the same order.
    Dependencies whose endpoints are not in ``task_ids`` are ignored.

    Raises:
        CyclicDependency: если порядок не существует
    """
    known = set(task_ids)
    in_degree = {task_id: 0 for task_id in known}
    graph = {task_id: [] for task_id in known}

    for dependency in dependencies:
        if dependency.from_task_id in known and dependency.to_task_id in known:
            graph[dependency.from_task_id].append(dependency.to_task_id)
            in_degree[dependency.to_task_id] += 1

    heap = [(str(task_id), task_id) for task_id, degree in in_degree.items() if degree == 0]
    heapq.heapify(heap)
    order = []
    while heap:
        _, task_id = heapq.heappop(heap)
        order.append(task_id)
        for successor_id in graph[task_id]:
            in_degree[successor_id] -= 1
            if in_degree[successor_id] == 0:
                heapq.heappush(heap, (str(successor_id), successor_id))

    if len(order) != len(known):
        remaining = [task_id for task_id, degree in in_degree.items() if degree > 0]
        logger.error(f"Обнаружена циклическая зависимость: {sorted(remaining, key=str)}")
        raise CyclicDependency(remaining)

    return order
