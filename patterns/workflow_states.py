"""Enum-based task workflow states.

Task statuses are plain string enums. Unlike an order lifecycle, any status
may move to any other status; the only thing the tracker cares about is
whether a change crosses into or out of completion, which drives progress
recomputation and the billing trigger.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


# ---------------------------------------------------------------------------
# State definitions
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Task workflow states."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DependencyType(str, Enum):
    """Precedence relation between two tasks."""

    FINISH_TO_START = "FS"
    START_TO_START = "SS"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "SF"


# Rows written before the status enum was tightened may still say "completed".
LEGACY_COMPLETED = "completed"
COMPLETED_STATUSES = frozenset({TaskStatus.DONE.value, LEGACY_COMPLETED})


def status_value(status: "TaskStatus | str | None") -> str | None:
    if isinstance(status, TaskStatus):
        return status.value
    return status


def is_completed(status: "TaskStatus | str | None") -> bool:
    return status_value(status) in COMPLETED_STATUSES


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

@dataclass
class StatusTransition:
    """Record of a single status change on a task.

    Usage::

        change = StatusTransition(task_id=7, project_id=2,
                                  from_status="in_progress", to_status="done")
        if change.enters_done:
            ...
    """

    task_id: int
    project_id: int
    from_status: str | None
    to_status: str | None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def changed(self) -> bool:
        return status_value(self.from_status) != status_value(self.to_status)

    @property
    def enters_done(self) -> bool:
        """True only for a move into ``done`` from a status that is not complete."""
        return (
            status_value(self.to_status) == TaskStatus.DONE.value
            and not is_completed(self.from_status)
        )
