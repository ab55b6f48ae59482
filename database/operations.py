from contextlib import contextmanager
from datetime import time

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from database.models import Base, Project, Task, TaskDependency, WorkCalendar, CalendarExceptionRecord, \
    Resource, ResourceAssignment, Baseline, BaselineTask
from config import DATABASE_URL
from logger import logger
from scheduling import models as engine_models
from scheduling.baseline import create_baseline
from scheduling.dependencies import validate_dependency, ValidationResult, RejectionKind
from scheduling.hierarchy import validate_parent

# Создаем соединение с БД
engine = create_engine(DATABASE_URL)
Session = sessionmaker(bind=engine)


def init_db():
    """Инициализирует базу данных."""
    logger.info(f"Инициализация базы данных с URL: {DATABASE_URL}")
    try:
        Base.metadata.create_all(engine)
        logger.info("База данных успешно инициализирована")
    except Exception as e:
        logger.error(f"Ошибка при инициализации базы данных: {str(e)}")
        raise


@contextmanager
def session_scope():
    """
    Контекстный менеджер для работы с сессиями SQLAlchemy.
    Автоматически выполняет commit при успешном завершении
    и rollback при возникновении исключения.
    """
    session = Session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Ошибка при работе с БД: {str(e)}")
        raise
    finally:
        session.close()


def format_working_hours(spans):
    """Упаковывает рабочие интервалы в строку "08:00-12:00|13:00-17:00"."""
    return "|".join(f"{span.start.strftime('%H:%M')}-{span.end.strftime('%H:%M')}" for span in spans)


def parse_working_hours(value):
    """Разбирает строку рабочих интервалов в список WorkingSpan."""
    spans = []
    if not value:
        return spans
    for part in value.split("|"):
        part = part.strip()
        if not part:
            continue
        start, end = part.split("-")
        spans.append(engine_models.WorkingSpan(time.fromisoformat(start.strip()), time.fromisoformat(end.strip())))
    return spans


def parse_working_days(value):
    """Разбирает строку "0,1,2,3,4" в кортеж номеров дней недели."""
    if not value:
        return ()
    return tuple(int(day) for day in value.split(",") if day.strip())


def create_calendar(name, working_days=(0, 1, 2, 3, 4), working_hours=None):
    """
    Создает рабочий календарь в БД.

    Args:
        name: Название календаря
        working_days: Номера рабочих дней недели (0 = понедельник)
        working_hours: Список WorkingSpan (defaults to 08-12, 13-17)

    Returns:
        ID созданного календаря
    """
    if working_hours is None:
        working_hours = engine_models.Calendar().working_hours
    with session_scope() as session:
        calendar = WorkCalendar(
            name=name,
            working_days=",".join(str(day) for day in working_days),
            working_hours=format_working_hours(working_hours),
        )
        session.add(calendar)
        session.flush()
        logger.info(f"Создан календарь '{name}' (ID: {calendar.id})")
        return calendar.id


def add_calendar_exception(calendar_id, start_date, end_date=None, is_working=False, name=None):
    """
    Добавляет исключение в календарь. Later exceptions win on overlapping dates.

    Returns:
        ID созданного исключения
    """
    with session_scope() as session:
        exception = CalendarExceptionRecord(
            calendar_id=calendar_id,
            name=name,
            start_date=start_date,
            end_date=end_date or start_date,
            is_working=is_working,
        )
        session.add(exception)
        session.flush()
        return exception.id


def create_new_project(name, start_date=None, calendar_id=None):
    """
    Создает новый проект в БД.

    Args:
        name: Название проекта
        start_date: Дата начала проекта
        calendar_id: ID календаря проекта

    Returns:
        ID созданного проекта
    """
    with session_scope() as session:
        project = Project(name=name, start_date=start_date, calendar_id=calendar_id)
        session.add(project)
        session.flush()
        logger.info(f"Создан проект '{name}' (ID: {project.id})")
        return project.id


def set_project_start_date(project_id, start_date):
    """Устанавливает дату начала проекта."""
    with session_scope() as session:
        project = session.get(Project, project_id)
        if not project:
            logger.warning(f"Проект {project_id} не найден")
            return False
        project.start_date = start_date
        return True


def add_project_task(project_id, name, duration=None, start=None, end=None, task_type="leaf",
                     priority=engine_models.TaskPriority.MEDIUM, parent_id=None, display_order=None,
                     fixed_cost=0.0, effort=None, progress=0.0, calendar_id=None,
                     constraint_type="ASAP", constraint_date=None):
    """
    Добавляет задачу в проект.

    Args:
        project_id: ID проекта
        name: Название задачи
        duration: Длительность в рабочих днях

    Returns:
        ID созданной задачи
    """
    with session_scope() as session:
        task = Task(
            project_id=project_id,
            name=name,
            duration=duration,
            start=start,
            end=end,
            task_type=engine_models.TaskType(task_type).value,
            priority=int(priority),
            parent_id=parent_id,
            display_order=display_order,
            fixed_cost=fixed_cost,
            effort=effort,
            progress=progress,
            calendar_id=calendar_id,
            constraint_type=engine_models.ConstraintType(constraint_type).value,
            constraint_date=constraint_date,
        )
        session.add(task)
        session.flush()
        return task.id


def update_task_progress(task_id, progress, actual_cost=None):
    """Обновляет прогресс задачи (и фактическую стоимость, если известна)."""
    with session_scope() as session:
        task = session.get(Task, task_id)
        if not task:
            logger.warning(f"Задача {task_id} не найдена")
            return False
        task.progress = max(0.0, min(100.0, progress))
        if actual_cost is not None:
            task.actual_cost = actual_cost
        return True


def add_task_dependency(task_id, predecessor_id, kind="FS", lag=0.0):
    """
    Добавляет зависимость между задачами, если она не нарушает граф.

    Args:
        task_id: ID задачи-последователя
        predecessor_id: ID задачи-предшественника
        kind: Тип связи (FS, SS, FF, SF)
        lag: Задержка в рабочих днях

    Returns:
        ValidationResult
    """
    with session_scope() as session:
        task = session.get(Task, task_id)
        if not task:
            return ValidationResult(False, f"Task {task_id} does not exist", RejectionKind.DANGLING)
        project_id = task.project_id

        tasks = [_task_from_row(row) for row in session.query(Task).filter(Task.project_id == project_id).all()]
        dependencies = [_dependency_from_row(row) for row in
                        session.query(TaskDependency).filter(TaskDependency.project_id == project_id).all()]
        new_dependency = engine_models.Dependency(
            id=None,
            from_task_id=predecessor_id,
            to_task_id=task_id,
            kind=engine_models.DependencyKind(kind),
            lag=lag,
        )

        result = validate_dependency(new_dependency, tasks, dependencies)
        if not result:
            logger.warning(f"Зависимость {predecessor_id} -> {task_id} отклонена: {result.reason}")
            return result

        session.add(TaskDependency(
            project_id=project_id,
            task_id=task_id,
            predecessor_id=predecessor_id,
            kind=new_dependency.kind.value,
            lag=lag,
        ))
        return result


def set_task_parent(task_id, parent_id):
    """
    Назначает задаче родителя, если это не создает цикл в иерархии.

    Returns:
        ValidationResult
    """
    with session_scope() as session:
        task = session.get(Task, task_id)
        if not task:
            return ValidationResult(False, f"Task {task_id} does not exist", RejectionKind.DANGLING)
        tasks = [_task_from_row(row) for row in session.query(Task).filter(Task.project_id == task.project_id).all()]

        result = validate_parent(task_id, parent_id, tasks)
        if result:
            task.parent_id = parent_id
        else:
            logger.warning(f"Родитель {parent_id} для задачи {task_id} отклонен: {result.reason}")
        return result


def add_resource(name, rate=0.0, availability=100.0, project_id=None):
    """
    Добавляет ресурс и, при необходимости, привязывает его к проекту.

    Returns:
        ID ресурса
    """
    with session_scope() as session:
        resource = Resource(name=name, rate=rate, availability=availability)
        session.add(resource)
        if project_id is not None:
            project = session.get(Project, project_id)
            if project:
                project.resources.append(resource)
            else:
                logger.warning(f"Проект {project_id} не найден, ресурс '{name}' не привязан")
        session.flush()
        return resource.id


def assign_resource(task_id, resource_id, allocation=100.0):
    """
    Назначает ресурс на задачу.

    Returns:
        ValidationResult
    """
    with session_scope() as session:
        task = session.get(Task, task_id)
        if not task:
            logger.warning(f"Назначение невозможно: задача {task_id} не найдена")
            return ValidationResult(False, f"Task {task_id} does not exist", RejectionKind.DANGLING)
        resource = session.get(Resource, resource_id)
        if not resource:
            logger.warning(f"Назначение невозможно: ресурс {resource_id} не найден")
            return ValidationResult(False, f"Resource {resource_id} does not exist", RejectionKind.DANGLING)

        project = task.project
        if resource not in project.resources:
            project.resources.append(resource)

        session.add(ResourceAssignment(task_id=task_id, resource_id=resource_id, allocation=allocation))
        return ValidationResult(True)


def _calendar_from_row(row):
    if row is None:
        return engine_models.Calendar()
    return engine_models.Calendar(
        id=row.id,
        name=row.name,
        working_days=parse_working_days(row.working_days),
        working_hours=parse_working_hours(row.working_hours),
        exceptions=[
            engine_models.CalendarException(
                start=exception.start_date,
                end=exception.end_date,
                is_working=bool(exception.is_working),
                name=exception.name or "",
            )
            for exception in row.exceptions
        ],
    )


def _task_from_row(row):
    return engine_models.Task(
        id=row.id,
        name=row.name,
        start=row.start,
        end=row.end,
        duration=row.duration,
        progress=row.progress or 0.0,
        type=engine_models.TaskType(row.task_type or "leaf"),
        priority=row.priority if row.priority is not None else engine_models.TaskPriority.MEDIUM,
        parent_id=row.parent_id,
        display_order=row.display_order,
        resources=[
            engine_models.ResourceAssignment(resource_id=assignment.resource_id, allocation=assignment.allocation)
            for assignment in row.assignments
        ],
        fixed_cost=row.fixed_cost or 0.0,
        effort=row.effort,
        actual_cost=row.actual_cost,
        calendar_id=row.calendar_id,
        constraint_type=engine_models.ConstraintType(row.constraint_type or "ASAP"),
        constraint_date=row.constraint_date,
    )


def _dependency_from_row(row):
    return engine_models.Dependency(
        id=row.id,
        from_task_id=row.predecessor_id,
        to_task_id=row.task_id,
        kind=engine_models.DependencyKind(row.kind or "FS"),
        lag=row.lag or 0.0,
    )


def get_project_data(project_id):
    """
    Загружает проект из БД в виде, пригодном для движка планирования.

    Args:
        project_id: ID проекта

    Returns:
        ProjectData или None, если проект не найден
    """
    with session_scope() as session:
        project = session.get(Project, project_id)
        if not project:
            return None

        tasks = [_task_from_row(row) for row in project.tasks]
        dependencies = [_dependency_from_row(row) for row in project.dependencies]

        # Календари задач, отличные от календаря проекта
        calendars = {}
        for row in project.tasks:
            if row.calendar is not None and row.calendar_id not in calendars:
                calendars[row.calendar_id] = _calendar_from_row(row.calendar)

        resources = {}
        for resource in project.resources:
            resources[resource.id] = resource
        for row in project.tasks:
            for assignment in row.assignments:
                resources.setdefault(assignment.resource_id, assignment.resource)

        logger.debug(f"Загружен проект {project_id}: {len(tasks)} задач, {len(dependencies)} зависимостей")
        return engine_models.ProjectData(
            id=project.id,
            name=project.name,
            tasks=tasks,
            dependencies=dependencies,
            calendar=_calendar_from_row(project.calendar),
            calendars=calendars,
            resources=[
                engine_models.Resource(id=r.id, name=r.name, rate=r.rate or 0.0,
                                       availability=r.availability if r.availability is not None else 100.0)
                for r in sorted(resources.values(), key=lambda r: r.id)
            ],
            start_date=project.start_date,
            end_date=project.end_date,
        )


def save_schedule(project_id, tasks, wbs_codes=None, project_finish=None):
    """
    Сохраняет рассчитанные параметры задач в БД.

    Args:
        project_id: ID проекта
        tasks: Задачи с рассчитанными параметрами
        wbs_codes: Словарь {task_id: wbs_code}
        project_finish: Дата окончания проекта

    Returns:
        Количество обновленных задач
    """
    wbs_codes = wbs_codes or {}
    updated = 0
    with session_scope() as session:
        rows = {row.id: row for row in session.query(Task).filter(Task.project_id == project_id).all()}
        for task in tasks:
            row = rows.get(task.id)
            if row is None:
                logger.warning(f"Задача {task.id} не найдена в проекте {project_id}")
                continue
            row.start = task.start
            row.end = task.end
            row.early_start = task.early_start
            row.early_finish = task.early_finish
            row.late_start = task.late_start
            row.late_finish = task.late_finish
            row.slack = task.slack
            row.is_critical = task.is_critical
            if task.cost is not None:
                row.cost = task.cost
            if task.id in wbs_codes:
                row.wbs_code = wbs_codes[task.id]
            updated += 1

        if project_finish is not None:
            project = session.get(Project, project_id)
            project.end_date = project_finish

    logger.info(f"Сохранено расписание проекта {project_id}: {updated} задач")
    return updated


def save_baseline(project_id, tasks, name, description="", project_start=None, project_end=None, calendar=None):
    """
    Сохраняет базовый план проекта.

    Args:
        project_id: ID проекта
        tasks: Задачи проекта (cost rolled up)
        name: Название базового плана

    Returns:
        ID сохраненного базового плана
    """
    snapshot = create_baseline(tasks, name, project_start=project_start, project_end=project_end,
                               description=description, calendar=calendar)
    with session_scope() as session:
        baseline = Baseline(
            project_id=project_id,
            name=snapshot.name,
            description=snapshot.description,
            saved_at=snapshot.saved_at,
            project_start=snapshot.project_start,
            project_end=snapshot.project_end,
            total_cost=snapshot.total_cost,
        )
        for entry in snapshot.tasks:
            baseline.tasks.append(BaselineTask(
                task_id=entry.task_id,
                start=entry.start,
                end=entry.end,
                duration=entry.duration,
                cost=entry.cost,
                progress=entry.progress,
                work=entry.work,
            ))
        session.add(baseline)
        session.flush()
        return baseline.id


def _baseline_from_row(row):
    return engine_models.Baseline(
        id=row.id,
        name=row.name,
        saved_at=row.saved_at,
        tasks=tuple(
            engine_models.TaskBaseline(
                task_id=entry.task_id,
                start=entry.start,
                end=entry.end,
                duration=entry.duration,
                cost=entry.cost,
                progress=entry.progress or 0.0,
                work=entry.work,
            )
            for entry in row.tasks
        ),
        project_start=row.project_start,
        project_end=row.project_end,
        total_cost=row.total_cost or 0.0,
        description=row.description or "",
    )


def get_baseline(project_id, baseline_id=None):
    """
    Загружает базовый план проекта.

    Args:
        project_id: ID проекта
        baseline_id: ID базового плана (defaults to the latest one)

    Returns:
        Baseline или None
    """
    with session_scope() as session:
        query = session.query(Baseline).filter(Baseline.project_id == project_id)
        if baseline_id is not None:
            row = query.filter(Baseline.id == baseline_id).first()
        else:
            row = query.order_by(Baseline.id.desc()).first()
        if row is None:
            return None
        return _baseline_from_row(row)


def get_projects():
    """Получает список всех проектов."""
    with session_scope() as session:
        return [
            {'id': project.id, 'name': project.name, 'start_date': project.start_date}
            for project in session.query(Project).order_by(Project.id).all()
        ]
