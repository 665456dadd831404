"""SQLAlchemy models for the construction vertical.

Each model inherits from Base and uses TimestampMixin for ids and audit
columns. The to_dict() method provides the camelCase wire payload used by
repositories and routers.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, TimestampMixin, isoformat, utcnow
from patterns.workflow_states import DependencyType, TaskPriority, TaskStatus


def _decimal(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


class User(TimestampMixin, Base):
    """A member of staff who can be assigned tasks. Read-only here."""

    __tablename__ = "users"

    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
        }


class Project(TimestampMixin, Base):
    """A construction project. Only ``progress`` is maintained by the tracker."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(300), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tasks: Mapped[list["Task"]] = relationship(
        back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )


class Task(TimestampMixin, Base):
    """A unit of work belonging to exactly one project."""

    __tablename__ = "tasks"

    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TaskStatus.TODO.value
    )
    priority: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TaskPriority.MEDIUM.value
    )
    assignee_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    parent_task_id: Mapped[int | None] = mapped_column(
        ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
    )
    is_billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_hours: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    actual_hours: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project: Mapped["Project"] = relationship(back_populates="tasks")
    assignee: Mapped["User | None"] = relationship()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "assigneeId": self.assignee_id,
            "assignee": self.assignee.to_summary() if self.assignee else None,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "progress": self.progress,
            "displayOrder": self.display_order,
            "parentTaskId": self.parent_task_id,
            "isBillable": self.is_billable,
            "published": self.published,
            "publishedAt": isoformat(self.published_at),
            "estimatedHours": _decimal(self.estimated_hours),
            "actualHours": _decimal(self.actual_hours),
            "completedAt": isoformat(self.completed_at),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class TaskDependency(Base):
    """Directed precedence edge: ``predecessor`` must precede ``successor``."""

    __tablename__ = "task_dependencies"
    __table_args__ = (
        UniqueConstraint("predecessor_id", "successor_id", name="uq_task_dependency_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    predecessor_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    successor_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(
        String(2), nullable=False, default=DependencyType.FINISH_TO_START.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "predecessorId": self.predecessor_id,
            "successorId": self.successor_id,
            "type": self.type,
            "createdAt": isoformat(self.created_at),
        }
