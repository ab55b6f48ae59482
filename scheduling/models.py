from dataclasses import dataclass, field
from datetime import datetime, date, time
from enum import Enum, IntEnum
from typing import List, Dict, Optional, Tuple


class TaskType(str, Enum):
    """Тип задачи."""
    LEAF = "leaf"
    MILESTONE = "milestone"
    SUMMARY = "summary"


class TaskPriority(IntEnum):
    """Приоритет задачи. Higher value wins during leveling."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class DependencyKind(str, Enum):
    """Тип связи между задачами."""
    FINISH_TO_START = "FS"
    START_TO_START = "SS"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "SF"


class ConstraintType(str, Enum):
    """
    Ограничение на даты задачи.

    MSO/MFO pin the start/finish, SNET/FNET clamp the early dates,
    SNLT/FNLT clamp the late dates.
    """
    ASAP = "ASAP"
    MUST_START_ON = "MSO"
    MUST_FINISH_ON = "MFO"
    START_NO_EARLIER_THAN = "SNET"
    START_NO_LATER_THAN = "SNLT"
    FINISH_NO_EARLIER_THAN = "FNET"
    FINISH_NO_LATER_THAN = "FNLT"


@dataclass
class ResourceAssignment:
    """Назначение ресурса на задачу."""
    resource_id: str
    allocation: float = 100.0


@dataclass
class Task:
    """Модель задачи."""
    id: str
    name: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    duration: Optional[float] = None  # working days
    progress: float = 0.0
    type: TaskType = TaskType.LEAF
    priority: int = TaskPriority.MEDIUM
    parent_id: Optional[str] = None
    display_order: Optional[int] = None
    resources: List[ResourceAssignment] = field(default_factory=list)
    fixed_cost: float = 0.0
    effort: Optional[float] = None  # working hours
    actual_cost: Optional[float] = None
    calendar_id: Optional[str] = None
    constraint_type: ConstraintType = ConstraintType.ASAP
    constraint_date: Optional[datetime] = None

    # Параметры сетевой модели (derived)
    early_start: Optional[datetime] = None
    early_finish: Optional[datetime] = None
    late_start: Optional[datetime] = None
    late_finish: Optional[datetime] = None
    slack: Optional[float] = None
    is_critical: bool = False
    cost: Optional[float] = None

    @property
    def is_milestone(self):
        return self.type == TaskType.MILESTONE


@dataclass
class Dependency:
    """Модель зависимости между задачами."""
    id: str
    from_task_id: str
    to_task_id: str
    kind: DependencyKind = DependencyKind.FINISH_TO_START
    lag: float = 0.0  # working days, negative = lead

    @property
    def key(self):
        return self.from_task_id, self.to_task_id, self.kind


@dataclass
class WorkingSpan:
    """Рабочий интервал внутри дня. An end of 00:00 means midnight at the end of the day."""
    start: time
    end: time

    @property
    def hours(self):
        start = self.start.hour * 3600 + self.start.minute * 60 + self.start.second
        end = self.end.hour * 3600 + self.end.minute * 60 + self.end.second
        if end == 0:
            end = 24 * 3600
        return (end - start) / 3600


@dataclass
class CalendarException:
    """Исключение календаря: диапазон дат (включительно) рабочий или нерабочий."""
    start: date
    end: date
    is_working: bool = False
    name: str = ""


def _default_working_hours():
    return [WorkingSpan(time(8, 0), time(12, 0)), WorkingSpan(time(13, 0), time(17, 0))]


@dataclass
class Calendar:
    """Модель рабочего календаря."""
    id: str = "default"
    name: str = "Standard"
    working_days: Tuple[int, ...] = (0, 1, 2, 3, 4)
    working_hours: List[WorkingSpan] = field(default_factory=_default_working_hours)
    exceptions: List[CalendarException] = field(default_factory=list)

    @property
    def hours_per_day(self):
        return sum(span.hours for span in self.working_hours)


@dataclass
class Resource:
    """Модель ресурса."""
    id: str
    name: str = ""
    rate: float = 0.0  # cost per working hour
    availability: float = 100.0


@dataclass(frozen=True)
class TaskBaseline:
    """Снимок задачи в базовом плане."""
    task_id: str
    start: Optional[datetime]
    end: Optional[datetime]
    duration: Optional[float] = None
    cost: Optional[float] = None
    progress: float = 0.0
    work: Optional[float] = None


@dataclass(frozen=True)
class Baseline:
    """Базовый план. Never mutated after creation."""
    id: str
    name: str
    saved_at: datetime
    tasks: Tuple[TaskBaseline, ...]
    project_start: Optional[datetime] = None
    project_end: Optional[datetime] = None
    total_cost: float = 0.0
    description: str = ""

    def for_task(self, task_id):
        for entry in self.tasks:
            if entry.task_id == task_id:
                return entry
        return None


@dataclass
class ProjectData:
    """Модель проекта: everything one engine run needs."""
    id: int
    name: str
    tasks: List[Task]
    dependencies: List[Dependency] = field(default_factory=list)
    calendar: Calendar = field(default_factory=Calendar)
    calendars: Dict[str, Calendar] = field(default_factory=dict)
    resources: List[Resource] = field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
