from sqlalchemy import Column, Integer, String, Float, ForeignKey, Boolean, DateTime, Table, Date as SQLAlchemyDate
from sqlalchemy.orm import declarative_base, relationship, backref
from datetime import datetime

Base = declarative_base()

# Таблица для связи ресурс-проект
resource_project = Table(
    'resource_project', Base.metadata,
    Column('resource_id', Integer, ForeignKey('resources.id'), primary_key=True),
    Column('project_id', Integer, ForeignKey('projects.id'), primary_key=True)
)


class Project(Base):
    """Модель проекта в БД."""
    __tablename__ = 'projects'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    calendar_id = Column(Integer, ForeignKey('calendars.id'), nullable=True)

    calendar = relationship("WorkCalendar")
    tasks = relationship("Task", back_populates="project", order_by="Task.id")
    dependencies = relationship("TaskDependency", back_populates="project", order_by="TaskDependency.id")
    resources = relationship("Resource", secondary=resource_project, back_populates="projects")
    baselines = relationship("Baseline", back_populates="project", order_by="Baseline.id")

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}')>"


class WorkCalendar(Base):
    """Модель рабочего календаря в БД."""
    __tablename__ = 'calendars'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    working_days = Column(String, nullable=False, default="0,1,2,3,4")  # Формат: "0,1,2,3,4"
    working_hours = Column(String, nullable=False, default="08:00-12:00|13:00-17:00")  # Формат: "08:00-12:00|13:00-17:00"

    exceptions = relationship("CalendarExceptionRecord", back_populates="calendar",
                              order_by="CalendarExceptionRecord.id")

    def __repr__(self):
        return f"<WorkCalendar(id={self.id}, name='{self.name}')>"


class CalendarExceptionRecord(Base):
    """Модель исключения календаря в БД. Insertion order decides overlaps."""
    __tablename__ = 'calendar_exceptions'

    id = Column(Integer, primary_key=True)
    calendar_id = Column(Integer, ForeignKey('calendars.id'), nullable=False)
    name = Column(String, nullable=True)
    start_date = Column(SQLAlchemyDate, nullable=False)
    end_date = Column(SQLAlchemyDate, nullable=False)
    is_working = Column(Boolean, default=False)

    calendar = relationship("WorkCalendar", back_populates="exceptions")

    def __repr__(self):
        return f"<CalendarExceptionRecord(calendar_id={self.calendar_id}, {self.start_date}..{self.end_date})>"


class Task(Base):
    """Модель задачи в БД."""
    __tablename__ = 'tasks'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False)
    name = Column(String, nullable=False)
    start = Column(DateTime, nullable=True)
    end = Column(DateTime, nullable=True)
    duration = Column(Float, nullable=True)  # Длительность в рабочих днях
    progress = Column(Float, default=0.0)
    task_type = Column(String, default="leaf")
    priority = Column(Integer, default=2)
    parent_id = Column(Integer, ForeignKey('tasks.id'), nullable=True)  # ID родительской задачи
    display_order = Column(Integer, nullable=True)
    fixed_cost = Column(Float, default=0.0)
    effort = Column(Float, nullable=True)  # Трудозатраты в часах
    actual_cost = Column(Float, nullable=True)
    calendar_id = Column(Integer, ForeignKey('calendars.id'), nullable=True)
    constraint_type = Column(String, default="ASAP")
    constraint_date = Column(DateTime, nullable=True)

    # Рассчитанные параметры сетевой модели
    early_start = Column(DateTime, nullable=True)
    early_finish = Column(DateTime, nullable=True)
    late_start = Column(DateTime, nullable=True)
    late_finish = Column(DateTime, nullable=True)
    slack = Column(Float, nullable=True)
    is_critical = Column(Boolean, default=False)
    cost = Column(Float, nullable=True)
    wbs_code = Column(String, nullable=True)

    project = relationship("Project", back_populates="tasks")
    calendar = relationship("WorkCalendar")
    subtasks = relationship("Task", backref=backref("parent", remote_side=[id]))  # Связь с подзадачами
    assignments = relationship("ResourceAssignment", back_populates="task", order_by="ResourceAssignment.id")

    def __repr__(self):
        return f"<Task(id={self.id}, name='{self.name}', duration={self.duration})>"


class TaskDependency(Base):
    """Модель зависимости между задачами в БД."""
    __tablename__ = 'task_dependencies'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False)
    task_id = Column(Integer, ForeignKey('tasks.id'), nullable=False)
    predecessor_id = Column(Integer, ForeignKey('tasks.id'), nullable=False)
    kind = Column(String, default="FS")
    lag = Column(Float, default=0.0)

    project = relationship("Project", back_populates="dependencies")
    task = relationship("Task", foreign_keys=[task_id])
    predecessor = relationship("Task", foreign_keys=[predecessor_id])

    def __repr__(self):
        return f"<TaskDependency(task_id={self.task_id}, predecessor_id={self.predecessor_id}, kind={self.kind})>"


class Resource(Base):
    """Модель ресурса в БД."""
    __tablename__ = 'resources'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    rate = Column(Float, default=0.0)  # Стоимость рабочего часа
    availability = Column(Float, default=100.0)

    projects = relationship("Project", secondary=resource_project, back_populates="resources")

    def __repr__(self):
        return f"<Resource(id={self.id}, name='{self.name}', rate={self.rate})>"


class ResourceAssignment(Base):
    """Модель назначения ресурса на задачу в БД."""
    __tablename__ = 'resource_assignments'

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey('tasks.id'), nullable=False)
    resource_id = Column(Integer, ForeignKey('resources.id'), nullable=False)
    allocation = Column(Float, default=100.0)

    task = relationship("Task", back_populates="assignments")
    resource = relationship("Resource")

    def __repr__(self):
        return f"<ResourceAssignment(task_id={self.task_id}, resource_id={self.resource_id})>"


class Baseline(Base):
    """Модель базового плана в БД."""
    __tablename__ = 'baselines'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    saved_at = Column(DateTime, default=datetime.now)
    project_start = Column(DateTime, nullable=True)
    project_end = Column(DateTime, nullable=True)
    total_cost = Column(Float, default=0.0)

    project = relationship("Project", back_populates="baselines")
    tasks = relationship("BaselineTask", back_populates="baseline", order_by="BaselineTask.id")

    def __repr__(self):
        return f"<Baseline(id={self.id}, name='{self.name}')>"


class BaselineTask(Base):
    """Модель снимка задачи в базовом плане."""
    __tablename__ = 'baseline_tasks'

    id = Column(Integer, primary_key=True)
    baseline_id = Column(Integer, ForeignKey('baselines.id'), nullable=False)
    task_id = Column(Integer, ForeignKey('tasks.id'), nullable=False)
    start = Column(DateTime, nullable=True)
    end = Column(DateTime, nullable=True)
    duration = Column(Float, nullable=True)
    cost = Column(Float, nullable=True)
    progress = Column(Float, default=0.0)
    work = Column(Float, nullable=True)

    baseline = relationship("Baseline", back_populates="tasks")

    def __repr__(self):
        return f"<BaselineTask(baseline_id={self.baseline_id}, task_id={self.task_id})>"
