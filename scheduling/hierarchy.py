# scheduling/hierarchy.py
"""
Иерархия задач: parent -> children index shared by the summary rollup, the
cost rollup and WBS numbering. All traversals are iterative.
"""
from dataclasses import dataclass
from typing import Dict, List
import logging

from scheduling.dependencies import ValidationResult, RejectionKind

logger = logging.getLogger(__name__)


@dataclass
class Hierarchy:
    """Индекс иерархии: children in input order, roots in input order."""
    children: Dict[str, List[str]]
    roots: List[str]
    parents: Dict[str, str]

    def has_children(self, task_id):
        return bool(self.children.get(task_id))


def _effective_parents(tasks):
    """
    Строит карту task -> parent, отбрасывая ссылки на неизвестные задачи и
    разрывая циклы.

    A parent cycle is broken at its member with the smallest id, which becomes
    an orphan root.
    """
    task_ids = {task.id for task in tasks}
    parents = {}
    for task in tasks:
        if task.parent_id is None:
            continue
        if task.parent_id not in task_ids:
            logger.warning(f"Task {task.id} references unknown parent {task.parent_id}, treating as root")
            continue
        if task.parent_id == task.id:
            logger.warning(f"Task {task.id} is its own parent, treating as root")
            continue
        parents[task.id] = task.parent_id

    # 0 - не посещена, 1 - в текущем пути, 2 - обработана
    state = {}
    for task in tasks:
        path = []
        current = task.id
        while current is not None and state.get(current, 0) == 0:
            state[current] = 1
            path.append(current)
            current = parents.get(current)

        if current is not None and state.get(current) == 1:
            cycle = path[path.index(current):]
            orphan = min(cycle, key=str)
            logger.warning(f"Parent cycle {' -> '.join(str(t) for t in cycle)}, treating {orphan} as root")
            del parents[orphan]

        for task_id in path:
            state[task_id] = 2

    return parents


def build_hierarchy(tasks):
    """
    Строит индекс иерархии задач.

    Args:
        tasks: Список задач

    Returns:
        Hierarchy с картой детей и списком корней
    """
    parents = _effective_parents(tasks)
    children = {}
    roots = []
    for task in tasks:
        parent_id = parents.get(task.id)
        if parent_id is None:
            roots.append(task.id)
        else:
            children.setdefault(parent_id, []).append(task.id)
    return Hierarchy(children=children, roots=roots, parents=parents)


def post_order(hierarchy):
    """Обход дерева снизу вверх: every child is yielded before its parent."""
    order = []
    stack = [(root, False) for root in reversed(hierarchy.roots)]
    while stack:
        task_id, expanded = stack.pop()
        if expanded:
            order.append(task_id)
            continue
        stack.append((task_id, True))
        for child_id in reversed(hierarchy.children.get(task_id, [])):
            stack.append((child_id, False))
    return order


def descendants(hierarchy, task_id):
    """Все потомки задачи (without the task itself)."""
    found = []
    stack = list(hierarchy.children.get(task_id, []))
    while stack:
        child_id = stack.pop()
        found.append(child_id)
        stack.extend(hierarchy.children.get(child_id, []))
    return found


def validate_parent(task_id, parent_id, tasks):
    """
    Проверяет, можно ли назначить задаче нового родителя.

    Args:
        task_id: ID задачи
        parent_id: ID нового родителя (None detaches the task)
        tasks: Текущий список задач

    Returns:
        ValidationResult
    """
    if parent_id is None:
        return ValidationResult(True)

    task_ids = {task.id for task in tasks}
    if task_id not in task_ids:
        return ValidationResult(False, f"Task {task_id} does not exist", RejectionKind.DANGLING)
    if parent_id not in task_ids:
        return ValidationResult(False, f"Parent task {parent_id} does not exist", RejectionKind.DANGLING)
    if parent_id == task_id:
        return ValidationResult(False, "A task cannot be its own parent", RejectionKind.SELF_REFERENCE)

    hierarchy = build_hierarchy(tasks)
    if parent_id in descendants(hierarchy, task_id):
        return ValidationResult(
            False, f"Task {parent_id} is a descendant of {task_id}", RejectionKind.CYCLE)

    return ValidationResult(True)
