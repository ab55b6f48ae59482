# scheduling/evm.py
"""
Метод освоенного объема (EVM).

Actual cost is not tracked by the engine. When a task carries no
``actual_cost`` it is approximated as ``cost x progress / 100``, which assumes
spending proportional to progress at the current cost estimate. This is an
approximation, not recorded spend.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple
import logging

from scheduling.baseline import scheduled_span
from scheduling.hierarchy import build_hierarchy
from scheduling.models import TaskType

logger = logging.getLogger(__name__)

# Returned for SPI/CPI when the denominator is zero
UNDEFINED_INDEX = 1.0


@dataclass(frozen=True)
class EVMMetrics:
    """Показатели освоенного объема."""
    pv: float
    ev: float
    ac: float
    sv: float
    cv: float
    spi: float
    cpi: float
    bac: float
    eac: float
    etc: float
    tcpi: float
    vac: float
    status_date: datetime
    undefined: Tuple[str, ...] = ()


def _ratio(numerator, denominator, name, undefined, sentinel=UNDEFINED_INDEX):
    try:
        return numerator / denominator
    except ZeroDivisionError:
        logger.debug(f"{name} is undefined (zero denominator), reporting {sentinel}")
        undefined.append(name)
        return sentinel


def planned_fraction(start, end, status_date):
    """
    Доля запланированного объема на дату статуса.

    0 before start, 1 after end, linear in between. Zero-length spans count as
    fully planned once the status date reaches them.
    """
    if start is None or end is None:
        return 0.0
    if status_date < start:
        return 0.0
    if status_date >= end:
        return 1.0
    return (status_date - start) / (end - start)


def _budget(task, entry):
    if entry is not None and entry.cost is not None:
        return entry.cost
    return task.cost or 0.0


def _derive_metrics(pv, ev, ac, bac, status_date):
    """Вычисляет индексы и прогнозы из PV/EV/AC/BAC."""
    undefined = []
    sv = ev - pv
    cv = ev - ac
    spi = _ratio(ev, pv, 'spi', undefined)
    cpi = _ratio(ev, ac, 'cpi', undefined)

    if cpi > 0:
        eac = bac / cpi
    else:
        # CPI неположителен: остаток работ по плановой стоимости
        eac = ac + (bac - ev)
    etc = eac - ac

    remaining_budget = bac - ac
    if remaining_budget != 0:
        tcpi = (bac - ev) / remaining_budget
    else:
        undefined.append('tcpi')
        tcpi = float('inf') if bac > ev else UNDEFINED_INDEX

    return EVMMetrics(
        pv=pv, ev=ev, ac=ac, sv=sv, cv=cv, spi=spi, cpi=cpi, bac=bac,
        eac=eac, etc=etc, tcpi=tcpi, vac=bac - eac, status_date=status_date,
        undefined=tuple(undefined),
    )


def task_evm(task, baseline_entry, status_date):
    """
    Рассчитывает показатели EVM для одной задачи.

    Args:
        task: Задача (cost filled by the cost rollup)
        baseline_entry: Запись задачи в базовом плане или None
        status_date: Дата статуса

    Returns:
        EVMMetrics
    """
    bac = _budget(task, baseline_entry)

    # PV считается по базовому плану, если задача в него входит
    if baseline_entry is not None:
        start, end = baseline_entry.start, baseline_entry.end
    else:
        start, end = scheduled_span(task)
    pv = bac * planned_fraction(start, end, status_date)

    ev = bac * (task.progress / 100.0)
    if task.actual_cost is not None:
        ac = task.actual_cost
    else:
        ac = (task.cost if task.cost is not None else bac) * (task.progress / 100.0)

    return _derive_metrics(pv, ev, ac, bac, status_date)


def compute_evm(tasks, baseline, status_date):
    """
    Рассчитывает показатели EVM для проекта.

    Parent and summary tasks are skipped so their rolled-up cost is not counted
    twice.

    Args:
        tasks: Задачи проекта
        baseline: Базовый план или None
        status_date: Дата статуса

    Returns:
        EVMMetrics
    """
    hierarchy = build_hierarchy(tasks)
    pv = ev = ac = bac = 0.0
    for task in tasks:
        if task.type == TaskType.SUMMARY or hierarchy.has_children(task.id):
            continue
        entry = baseline.for_task(task.id) if baseline is not None else None
        metrics = task_evm(task, entry, status_date)
        pv += metrics.pv
        ev += metrics.ev
        ac += metrics.ac
        bac += metrics.bac

    metrics = _derive_metrics(pv, ev, ac, bac, status_date)
    logger.info(f"EVM на {status_date}: PV={pv:.2f} EV={ev:.2f} AC={ac:.2f} SPI={metrics.spi:.3f} CPI={metrics.cpi:.3f}")
    return metrics
