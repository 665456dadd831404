"""Pydantic schemas for API request validation.

Clients speak camelCase; every schema also accepts snake_case field names.
Date inputs take ``YYYY-MM-DD`` or a full ISO datetime and keep only the
calendar date; an empty string means "no date".
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from patterns.workflow_states import DependencyType, TaskPriority, TaskStatus


def parse_date_value(value: Any) -> Optional[date]:
    """Normalise a date-ish input to a ``date`` (or None)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return date.fromisoformat(text[:10])
    raise ValueError("Expected a date string")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class _TaskFields(CamelModel):
    description: Optional[str] = None
    assignee_id: Optional[int] = Field(None, gt=0)
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    display_order: Optional[int] = None
    parent_task_id: Optional[int] = Field(None, gt=0)
    is_billable: Optional[bool] = None
    estimated_hours: Optional[Decimal] = Field(None, ge=0)
    actual_hours: Optional[Decimal] = Field(None, ge=0)

    @field_validator("start_date", "due_date", mode="before")
    @classmethod
    def _normalise_date(cls, value: Any) -> Optional[date]:
        return parse_date_value(value)


class TaskCreate(_TaskFields):
    title: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    progress: int = Field(0, ge=0, le=100)
    display_order: int = 0
    is_billable: bool = False

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value


class TaskUpdate(_TaskFields):
    """Partial update. Fields left out of the payload are left untouched.

    ``projectId`` is not a field here, so a payload carrying it has that
    key dropped during validation.
    """

    title: Optional[str] = Field(None, min_length=1)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

class DependencyCreate(CamelModel):
    predecessor_id: int = Field(..., gt=0)
    successor_id: int = Field(..., gt=0)
    type: DependencyType = DependencyType.FINISH_TO_START


class DependencyRef(CamelModel):
    predecessor_id: int = Field(..., gt=0)
    successor_id: int = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Bulk import
# ---------------------------------------------------------------------------

class PlanItem(CamelModel):
    """One row of an externally authored project plan.

    ``name``, ``start`` and ``end`` are optional here on purpose: items
    lacking any of them are skipped by the importer, not rejected.
    """

    id: Optional[str | int] = None
    name: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    description: Optional[str] = None
    progress: float = Field(0, ge=0, le=100)
    type: Optional[str] = None

    @field_validator("progress", mode="before")
    @classmethod
    def _progress_default(cls, value: Any) -> Any:
        return 0 if value is None else value


class TaskDraft(CamelModel):
    """An AI-drafted task waiting to be turned into a real one."""

    key: str = Field(..., min_length=1)
    task_name: str = Field(..., min_length=1)
    phase: Optional[str] = None
    trade: Optional[str] = None
    description: Optional[str] = None
    duration_days: Optional[Decimal] = Field(None, ge=0)
    depends_on: list[str] = Field(default_factory=list)


class DraftConversionRequest(CamelModel):
    drafts: list[TaskDraft] = Field(..., min_length=1)
