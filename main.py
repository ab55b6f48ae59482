# main.py
import argparse
import sys
from datetime import datetime

from logger import logger
from config import DEFAULT_HOURS_PER_DAY
from database.operations import init_db, get_project_data, save_schedule, save_baseline, get_baseline, get_projects
from scheduling import engine
from scheduling.baseline import project_variance
from scheduling.errors import SchedulingError
from scheduling.leveling import find_overallocations


def _parse_date(value):
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Неверный формат даты: {value} (ожидается ГГГГ-ММ-ДД[ЧЧ:ММ])")


def _format_date(value):
    return value.strftime('%d.%m.%Y %H:%M') if value else '-'


def _load_project(project_id):
    project = get_project_data(project_id)
    if project is None:
        logger.error(f"Проект {project_id} не найден")
    return project


def _hours_per_day(project):
    return project.calendar.hours_per_day or DEFAULT_HOURS_PER_DAY


def cmd_init_db(args):
    init_db()
    return 0


def cmd_projects(args):
    for project in get_projects():
        print(f"{project['id']}\t{project['name']}\t{_format_date(project['start_date'])}")
    return 0


def cmd_schedule(args):
    project = _load_project(args.project_id)
    if project is None:
        return 1

    report = engine.run_schedule(project, hours_per_day=_hours_per_day(project))
    schedule = report.schedule
    for task in sorted(schedule.tasks, key=lambda t: [int(p) for p in report.wbs_codes[t.id].split('.')]):
        marker = '*' if task.is_critical else ' '
        slack = f"{task.slack:.2f}" if task.slack is not None else '-'
        print(f"{marker} {report.wbs_codes[task.id]:<8} {task.name:<30} "
              f"{_format_date(task.early_start)} - {_format_date(task.early_finish)}  резерв {slack}")
    print(f"Окончание проекта: {_format_date(schedule.project_finish)}")
    print(f"Критический путь: {' -> '.join(str(task_id) for task_id in schedule.critical_path)}")
    print(f"Стоимость проекта: {report.total_cost:.2f}")

    if args.save:
        save_schedule(project.id, schedule.tasks, report.wbs_codes, schedule.project_finish)
    return 0


def cmd_level(args):
    project = _load_project(args.project_id)
    if project is None:
        return 1

    leveled = engine.level_and_recalculate(
        project.tasks, project.dependencies, project.calendar,
        project_start=project.start_date, project_end=project.end_date,
        calendars=project.calendars, respect_priorities=not args.ignore_priorities,
    )
    for change in leveled.leveling.changes:
        print(f"Задача {change.task_id}: {_format_date(change.original_start)} -> {_format_date(change.new_start)} "
              f"({change.reason})")
    print(f"Перенесено задач: {leveled.leveling.moved_count}, "
          f"суммарная задержка {leveled.leveling.total_delay:.2f} раб. дн.")
    print(f"Окончание проекта: {_format_date(leveled.schedule.project_finish)}")

    remaining = find_overallocations(leveled.leveling.tasks)
    if remaining:
        logger.warning(f"Остались перегрузки ресурсов: {len(remaining)}")

    if args.save:
        save_schedule(project.id, leveled.schedule.tasks, project_finish=leveled.schedule.project_finish)
    return 0


def cmd_costs(args):
    project = _load_project(args.project_id)
    if project is None:
        return 1

    hours_per_day = _hours_per_day(project)
    costed = engine.rollup_costs(project.tasks, project.resources, hours_per_day, project.calendar)
    codes = engine.assign_wbs(costed)
    for task in sorted(costed, key=lambda t: [int(p) for p in codes[t.id].split('.')]):
        print(f"{codes[task.id]:<8} {task.name:<30} {task.cost:>12.2f}")
    print(f"Итого: {engine.project_cost(project.tasks, project.resources, hours_per_day, project.calendar):.2f}")
    return 0


def cmd_evm(args):
    project = _load_project(args.project_id)
    if project is None:
        return 1

    schedule = engine.recalculate(project.tasks, project.dependencies, project.calendar,
                                  project_end=project.end_date, project_start=project.start_date,
                                  calendars=project.calendars)
    costed = engine.rollup_costs(schedule.tasks, project.resources, _hours_per_day(project), project.calendar)
    baseline = get_baseline(project.id, args.baseline_id)
    if baseline is None:
        logger.warning(f"У проекта {project.id} нет базового плана, PV считается по текущим датам")
    status_date = args.status_date or datetime.now()
    metrics = engine.compute_evm(costed, baseline, status_date)

    print(f"Дата статуса: {_format_date(metrics.status_date)}")
    for name in ('pv', 'ev', 'ac', 'sv', 'cv', 'bac', 'eac', 'etc', 'vac'):
        print(f"{name.upper():<5} {getattr(metrics, name):>12.2f}")
    for name in ('spi', 'cpi', 'tcpi'):
        note = ' (не определен)' if name in metrics.undefined else ''
        print(f"{name.upper():<5} {getattr(metrics, name):>12.3f}{note}")
    return 0


def cmd_baseline(args):
    project = _load_project(args.project_id)
    if project is None:
        return 1

    hours_per_day = _hours_per_day(project)
    schedule = engine.recalculate(project.tasks, project.dependencies, project.calendar,
                                  project_end=project.end_date, project_start=project.start_date,
                                  calendars=project.calendars)
    costed = engine.rollup_costs(schedule.tasks, project.resources, hours_per_day, project.calendar)

    if args.compare:
        baseline = get_baseline(project.id)
        if baseline is None:
            logger.error(f"У проекта {project.id} нет базового плана")
            return 1
        variance = project_variance(costed, baseline)
        print(f"Базовый план: {variance.baseline_name}")
        print(f"Отклонение начала: {variance.start_variance} дн.")
        print(f"Отклонение окончания: {variance.end_variance} дн.")
        print(f"Отклонение стоимости: {variance.total_cost_variance:.2f}")
        return 0

    baseline_id = save_baseline(project.id, costed, args.name, description=args.description or "",
                                project_start=schedule.project_start, project_end=schedule.project_finish,
                                calendar=project.calendar)
    print(f"Базовый план сохранен (ID: {baseline_id})")
    return 0


def cmd_wbs(args):
    project = _load_project(args.project_id)
    if project is None:
        return 1

    codes = engine.assign_wbs(project.tasks)
    names = {task.id: task.name for task in project.tasks}
    for task_id, code in sorted(codes.items(), key=lambda item: [int(p) for p in item[1].split('.')]):
        indent = '  ' * code.count('.')
        print(f"{indent}{code} {names[task_id]}")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="scheduler", description="Планирование проектов")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="Создать таблицы базы данных")
    p_init.set_defaults(func=cmd_init_db)

    p_projects = sub.add_parser("projects", help="Список проектов")
    p_projects.set_defaults(func=cmd_projects)

    p_schedule = sub.add_parser("schedule", help="Рассчитать сетевую модель проекта")
    p_schedule.add_argument("project_id", type=int)
    p_schedule.add_argument("--save", action="store_true", help="Сохранить рассчитанные даты в БД")
    p_schedule.set_defaults(func=cmd_schedule)

    p_level = sub.add_parser("level", help="Выровнять загрузку ресурсов")
    p_level.add_argument("project_id", type=int)
    p_level.add_argument("--ignore-priorities", action="store_true", help="Не учитывать приоритеты задач")
    p_level.add_argument("--save", action="store_true", help="Сохранить новые даты в БД")
    p_level.set_defaults(func=cmd_level)

    p_costs = sub.add_parser("costs", help="Стоимость задач и проекта")
    p_costs.add_argument("project_id", type=int)
    p_costs.set_defaults(func=cmd_costs)

    p_evm = sub.add_parser("evm", help="Показатели освоенного объема")
    p_evm.add_argument("project_id", type=int)
    p_evm.add_argument("--status-date", type=_parse_date, default=None)
    p_evm.add_argument("--baseline-id", type=int, default=None)
    p_evm.set_defaults(func=cmd_evm)

    p_baseline = sub.add_parser("baseline", help="Сохранить или сравнить базовый план")
    p_baseline.add_argument("project_id", type=int)
    p_baseline.add_argument("--name", default="Baseline")
    p_baseline.add_argument("--description", default=None)
    p_baseline.add_argument("--compare", action="store_true", help="Сравнить с последним базовым планом")
    p_baseline.set_defaults(func=cmd_baseline)

    p_wbs = sub.add_parser("wbs", help="Иерархическая нумерация задач")
    p_wbs.add_argument("project_id", type=int)
    p_wbs.set_defaults(func=cmd_wbs)

    return parser


def main(argv=None):
    """Запуск командной строки."""
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except SchedulingError as e:
        logger.error(f"Ошибка планирования: {e}")
        return 2


if __name__ == '__main__':
    sys.exit(main())
