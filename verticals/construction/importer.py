"""Bulk task creation: plan imports and draft conversion.

Two entry points with deliberately different failure behaviour:

- ``import_plan`` creates tasks one by one through the normal create path
  and commits each, so a failure part-way keeps what was already created.
- ``convert_drafts`` validates the whole draft graph first and then writes
  every task and edge in a single transaction.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from core.errors import (
    CycleError,
    InternalError,
    TrackerError,
    ValidationError,
    validation_error_from_pydantic,
)
from patterns.domain_config import ImportConfig
from patterns.rules_engine import check_acyclic, check_plan_item_complete, status_for_progress
from patterns.workflow_states import DependencyType, TaskPriority, TaskStatus
from verticals.construction.models.schemas import PlanItem, TaskCreate, TaskDraft
from verticals.construction.service import TaskService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plan import
# ---------------------------------------------------------------------------

def plan_item_to_task(item: PlanItem, default_priority: str) -> TaskCreate:
    """Map a plan item onto the task create payload."""
    progress = int(
        Decimal(str(item.progress or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return TaskCreate(
        title=item.name,
        description=item.description,
        status=status_for_progress(progress),
        priority=default_priority,
        progress=progress,
        start_date=item.start,
        due_date=item.end,
    )


async def import_plan(
    service: TaskService,
    project_id: int,
    items: list[PlanItem],
    settings: ImportConfig,
) -> dict[str, Any]:
    """Create a task for every complete plan item, in input order."""
    if len(items) > settings.max_items:
        raise ValidationError(
            f"Too many plan items: {len(items)} exceeds the limit of {settings.max_items}."
        )
    await service.require_project(project_id)

    created: list[dict] = []
    skipped: list[dict] = []
    for index, item in enumerate(items):
        rule = check_plan_item_complete(item.model_dump())
        if not rule.passed:
            skipped.append({"index": index, "id": item.id, "reason": rule.message})
            continue

        try:
            payload = plan_item_to_task(item, settings.default_priority)
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(
                exc, f"Invalid plan item at index {index}."
            ) from exc

        # create_task commits, so earlier items survive a later failure
        created.append(await service.create_task(project_id, payload))

    logger.info(
        "Imported %d tasks into project %s (%d skipped)", len(created), project_id, len(skipped)
    )
    return {"createdCount": len(created), "tasks": created, "skipped": skipped}


# ---------------------------------------------------------------------------
# Draft conversion
# ---------------------------------------------------------------------------

def draft_title(draft: TaskDraft) -> str:
    return " - ".join(part for part in (draft.phase, draft.trade, draft.task_name) if part)


def validate_drafts(drafts: list[TaskDraft]) -> None:
    """Reject duplicate keys, unknown or self references, and cycles."""
    field_errors: dict[str, list[str]] = {}
    keys = [draft.key for draft in drafts]
    seen: set[str] = set()
    for index, key in enumerate(keys):
        if key in seen:
            field_errors.setdefault(f"drafts.{index}.key", []).append(f"Duplicate key '{key}'")
        seen.add(key)

    for index, draft in enumerate(drafts):
        for ref in draft.depends_on:
            if ref == draft.key:
                field_errors.setdefault(f"drafts.{index}.dependsOn", []).append(
                    "A draft cannot depend on itself"
                )
            elif ref not in seen:
                field_errors.setdefault(f"drafts.{index}.dependsOn", []).append(
                    f"Unknown draft key '{ref}'"
                )
    if field_errors:
        raise ValidationError(
            "Invalid task drafts.", {"formErrors": [], "fieldErrors": field_errors}
        )

    result = check_acyclic({draft.key: list(draft.depends_on) for draft in drafts})
    if not result.passed:
        raise CycleError(result.message, {"keys": result.details["blocked"]})


async def convert_drafts(
    service: TaskService,
    project_id: int,
    drafts: list[TaskDraft],
    settings: ImportConfig,
) -> dict[str, Any]:
    """Turn drafts into tasks plus finish-to-start edges, all or nothing."""
    if len(drafts) > settings.max_items:
        raise ValidationError(
            f"Too many drafts: {len(drafts)} exceeds the limit of {settings.max_items}."
        )
    validate_drafts(drafts)
    await service.require_project(project_id)

    session = service.session
    try:
        task_ids: dict[str, int] = {}
        tasks: list[dict] = []
        for draft in drafts:
            hours = None
            if draft.duration_days is not None:
                hours = Decimal(draft.duration_days) * settings.hours_per_day
            task = await service.tasks.create_for_project(
                project_id,
                {
                    "title": draft_title(draft),
                    "description": draft.description,
                    "status": TaskStatus.TODO.value,
                    "priority": TaskPriority.MEDIUM.value,
                    "estimated_hours": hours,
                },
            )
            task_ids[draft.key] = task["id"]
            tasks.append(task)

        edges: list[dict] = []
        for draft in drafts:
            for ref in draft.depends_on:
                edges.append(
                    await service.dependencies.add(
                        task_ids[ref],
                        task_ids[draft.key],
                        DependencyType.FINISH_TO_START.value,
                    )
                )
        await session.commit()
    except TrackerError:
        await session.rollback()
        raise
    except Exception as exc:
        await session.rollback()
        logger.exception("Draft conversion failed for project %s", project_id)
        raise InternalError(
            "Failed to convert task drafts.", details={"projectId": project_id}
        ) from exc

    logger.info(
        "Converted %d drafts into tasks for project %s (%d dependencies)",
        len(tasks), project_id, len(edges),
    )
    return {"createdCount": len(tasks), "tasks": tasks, "dependencies": edges}
