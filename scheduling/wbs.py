# scheduling/wbs.py
"""
Иерархическая нумерация задач (WBS).
"""
from datetime import datetime
import logging

from scheduling.hierarchy import build_hierarchy

logger = logging.getLogger(__name__)


def _sibling_key(task):
    # Сначала явный порядок, затем дата начала, затем id; missing values go last
    has_order = task.display_order is not None
    has_start = task.start is not None
    return (
        0 if has_order else 1,
        task.display_order if has_order else 0,
        0 if has_start else 1,
        task.start if has_start else datetime.min,
        str(task.id),
    )


def assign_wbs(tasks):
    """
    Назначает задачам коды WBS вида "1", "1.2", "1.2.3".

    Args:
        tasks: Список задач

    Returns:
        Словарь {task_id: wbs_code}
    """
    tasks_by_id = {task.id: task for task in tasks}
    hierarchy = build_hierarchy(tasks)

    def ordered(task_ids):
        return sorted(task_ids, key=lambda t: _sibling_key(tasks_by_id[t]))

    codes = {}
    stack = [(task_id, str(index)) for index, task_id in enumerate(ordered(hierarchy.roots), start=1)]
    stack.reverse()
    while stack:
        task_id, code = stack.pop()
        codes[task_id] = code
        children = ordered(hierarchy.children.get(task_id, []))
        for index in range(len(children), 0, -1):
            stack.append((children[index - 1], f"{code}.{index}"))

    logger.debug(f"Назначено кодов WBS: {len(codes)}")
    return codes
