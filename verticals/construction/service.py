"""Task service: the write paths that span more than one repository.

Routers validate payloads and call in here. The service enforces project
scoping, the dependency edge rules and the publication gate, commits the
primary change, and only then publishes events whose handlers (progress
recomputation, billing signal) run in their own error boundaries.
"""

import logging
from typing import Any

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import CycleError, InternalError, NotFoundError, ValidationError
from core.events import Event, EventBus, TrackerEvent
from core.models.base import utcnow
from patterns.rules_engine import build_adjacency, check_not_self_dependency, creates_cycle
from patterns.workflow_states import StatusTransition, TaskStatus
from verticals.construction.models.db_models import User
from verticals.construction.models.schemas import (
    DependencyCreate,
    DependencyRef,
    TaskCreate,
    TaskUpdate,
)
from verticals.construction.repository import (
    DependencyRepository,
    ProjectRepository,
    TaskRepository,
)

logger = logging.getLogger(__name__)

# Columns that reject NULL; an explicit null in an update means "leave as is".
NON_NULLABLE_UPDATE_FIELDS = frozenset(
    {"title", "status", "priority", "progress", "display_order", "is_billable"}
)


class TaskService:
    """Project-scoped task, dependency and publication operations."""

    def __init__(self, session: AsyncSession, events: EventBus):
        self.session = session
        self.events = events
        self.projects = ProjectRepository(session)
        self.tasks = TaskRepository(session)
        self.dependencies = DependencyRepository(session)

    # -- Lookups --

    async def require_project(self, project_id: int) -> None:
        if not await self.projects.exists(project_id):
            raise NotFoundError("Project not found.")

    async def require_task(self, project_id: int, task_id: int) -> dict:
        task = await self.tasks.get(task_id)
        if not task or task["projectId"] != project_id:
            raise NotFoundError("Task not found.")
        return task

    async def _check_references(
        self, project_id: int, data: dict[str, Any], task_id: int | None = None
    ) -> None:
        """Assignee must be a known user; parent must be another task of the project."""
        field_errors: dict[str, list[str]] = {}
        assignee_id = data.get("assignee_id")
        if assignee_id is not None and await self.session.get(User, assignee_id) is None:
            field_errors["assigneeId"] = ["Assignee does not exist"]
        parent_id = data.get("parent_task_id")
        if parent_id is not None:
            if parent_id == task_id:
                field_errors["parentTaskId"] = ["A task cannot be its own parent"]
            elif parent_id not in await self.tasks.ids_for_project(project_id):
                field_errors["parentTaskId"] = ["Parent task does not exist in this project"]
        if field_errors:
            raise ValidationError(
                "Invalid task data.", {"formErrors": [], "fieldErrors": field_errors}
            )

    # -- Task store --

    async def list_tasks(self, project_id: int) -> list[dict]:
        await self.require_project(project_id)
        return await self.tasks.list_for_project(project_id)

    async def list_published_tasks(self, project_id: int) -> list[dict]:
        await self.require_project(project_id)
        return await self.tasks.list_published_for_project(project_id)

    async def get_task(self, project_id: int, task_id: int) -> dict:
        await self.require_project(project_id)
        return await self.require_task(project_id, task_id)

    async def create_task(self, project_id: int, payload: TaskCreate) -> dict:
        """Insert a task. Progress is not recomputed on creation."""
        await self.require_project(project_id)
        data = payload.model_dump()
        await self._check_references(project_id, data)
        if data["status"] == TaskStatus.DONE.value:
            data["completed_at"] = utcnow()
        task = await self.tasks.create_for_project(project_id, data)
        await self.session.commit()
        logger.info("Created task %s in project %s", task["id"], project_id)
        return task

    async def update_task(self, project_id: int, task_id: int, payload: TaskUpdate) -> dict:
        """Apply a partial update, commit it, then publish the status change."""
        data = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if not (value is None and key in NON_NULLABLE_UPDATE_FIELDS)
        }
        if not data:
            raise ValidationError("No update data provided.")

        await self.require_project(project_id)
        current = await self.require_task(project_id, task_id)
        await self._check_references(project_id, data, task_id)

        transition = StatusTransition(
            task_id=task_id,
            project_id=project_id,
            from_status=current["status"],
            to_status=data.get("status", current["status"]),
        )
        if transition.enters_done:
            data["completed_at"] = utcnow()
        elif "status" in data and data["status"] != TaskStatus.DONE.value:
            data["completed_at"] = None

        updated = await self.tasks.update(task_id, data)
        await self.session.commit()

        if transition.changed:
            await self.events.publish(
                self.session,
                Event(
                    name=TrackerEvent.TASK_STATUS_CHANGED.value,
                    payload={
                        "projectId": project_id,
                        "taskId": task_id,
                        "fromStatus": transition.from_status,
                        "toStatus": transition.to_status,
                        "entersDone": transition.enters_done,
                        "task": updated,
                    },
                ),
            )
        return updated

    async def delete_task(self, project_id: int, task_id: int) -> None:
        await self.require_project(project_id)
        await self.require_task(project_id, task_id)
        if not await self.tasks.delete(task_id):
            raise NotFoundError("Task not found or could not be deleted.")
        await self.session.commit()
        logger.info("Deleted task %s from project %s", task_id, project_id)

    # -- Dependency store --

    async def list_dependencies_for_project(self, project_id: int) -> list[dict]:
        await self.require_project(project_id)
        return await self.dependencies.list_for_project(project_id)

    async def list_dependencies_for_task(self, project_id: int, task_id: int) -> list[dict]:
        await self.require_project(project_id)
        await self.require_task(project_id, task_id)
        return await self.dependencies.list_for_task(task_id)

    async def add_dependency(self, project_id: int, payload: DependencyCreate) -> dict:
        """Create ``predecessor -> successor``, or return the stored edge."""
        predecessor_id, successor_id = payload.predecessor_id, payload.successor_id

        rule = check_not_self_dependency(predecessor_id, successor_id)
        if not rule.passed:
            raise ValidationError(
                rule.message, {"formErrors": [rule.message], "fieldErrors": {}}
            )

        await self.require_project(project_id)
        project_task_ids = await self.tasks.ids_for_project(project_id)
        if predecessor_id not in project_task_ids or successor_id not in project_task_ids:
            raise NotFoundError("One or both tasks involved in the dependency do not exist.")

        existing = await self.dependencies.find(predecessor_id, successor_id)
        if existing:
            return existing

        adjacency = build_adjacency(await self.dependencies.edge_pairs_for_project(project_id))
        if creates_cycle(adjacency, predecessor_id, successor_id):
            raise CycleError(
                f"Cyclic dependency detected: Task {predecessor_id} already depends "
                f"on Task {successor_id}."
            )

        edge = await self.dependencies.add(predecessor_id, successor_id, payload.type)
        await self.session.commit()
        logger.info(
            "Added dependency %s -> %s in project %s", predecessor_id, successor_id, project_id
        )
        return edge

    async def remove_dependency(self, project_id: int, payload: DependencyRef) -> None:
        await self.require_project(project_id)
        project_task_ids = await self.tasks.ids_for_project(project_id)
        if (
            payload.predecessor_id not in project_task_ids
            or payload.successor_id not in project_task_ids
        ):
            raise NotFoundError("Dependency not found or could not be removed.")
        removed = await self.dependencies.remove(payload.predecessor_id, payload.successor_id)
        if not removed:
            raise NotFoundError("Dependency not found or could not be removed.")
        await self.session.commit()

    # -- Publication gate --

    async def set_published(self, project_id: int, published: bool) -> dict[str, Any]:
        """Publish or unpublish every task of the project at once.

        A project without tasks is reported as "no tasks to (un)publish";
        tasks that exist but were not touched by the UPDATE are an internal
        failure.
        """
        verb = "publish" if published else "unpublish"
        await self.require_project(project_id)

        total = await self.tasks.count({"project_id": project_id})
        if total == 0:
            raise NotFoundError(f"No tasks to {verb}.")

        updated = await self.tasks.set_published_for_project(project_id, published)
        if updated == 0:
            raise InternalError(
                f"Failed to {verb} tasks.",
                details={"projectId": project_id, "operation": verb, "taskCount": total},
            )
        await self.session.commit()
        logger.info("%sed %d tasks in project %s", verb.capitalize(), updated, project_id)
        return {"success": True, "published": published, "updatedCount": updated}


# ---------------------------------------------------------------------------
# FastAPI dependency factories
# ---------------------------------------------------------------------------

_event_bus: EventBus | None = None


def set_event_bus(bus: EventBus) -> None:
    global _event_bus
    _event_bus = bus


def get_event_bus() -> EventBus:
    """FastAPI dependency for the application's event bus."""
    global _event_bus
    if _event_bus is None:
        from verticals.construction.subscribers import build_event_bus

        _event_bus = build_event_bus()
    return _event_bus


def get_task_service(
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
) -> TaskService:
    """FastAPI dependency for TaskService."""
    return TaskService(session, events)
