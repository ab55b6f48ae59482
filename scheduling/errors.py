"""
Ошибки движка планирования.
"""


class SchedulingError(Exception):
    """Base class for all engine failures."""


class CyclicDependency(SchedulingError):
    """The dependency graph has no topological order."""

    def __init__(self, task_ids):
        self.task_ids = sorted(task_ids, key=str)
        super().__init__(f"Cyclic dependency between tasks: {', '.join(str(t) for t in self.task_ids)}")


class InvalidCalendar(SchedulingError):
    """The calendar cannot be used to convert durations into dates."""


class DanglingReference(SchedulingError):
    """A dependency or assignment points to something that does not exist."""

    def __init__(self, kind, ref_id, owner_id=None):
        self.kind = kind
        self.ref_id = ref_id
        self.owner_id = owner_id
        message = f"Unknown {kind} '{ref_id}'"
        if owner_id is not None:
            message += f" referenced by '{owner_id}'"
        super().__init__(message)
