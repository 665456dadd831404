"""Construction repositories: async database access for tasks and edges.

Extends BaseRepository with project-scoped task queries, the bulk
publication flag flip, and the dependency edge store with its
insert-or-return-existing semantics.
"""

import logging
from typing import Any

from sqlalchemy import delete, insert, or_, select, update
from sqlalchemy.orm import selectinload

from core.models.base import utcnow
from patterns.repository import BaseRepository
from patterns.workflow_states import DependencyType
from verticals.construction.models.db_models import Project, Task, TaskDependency

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Project accessor
# ---------------------------------------------------------------------------

class ProjectRepository(BaseRepository[Project]):
    """Read projects and write their derived progress."""

    model = Project

    async def exists(self, project_id: int) -> bool:
        stmt = select(Project.id).where(Project.id == project_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def set_progress(self, project_id: int, progress: int) -> bool:
        stmt = (
            update(Project)
            .where(Project.id == project_id)
            .values(progress=progress, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Task repository
# ---------------------------------------------------------------------------

class TaskRepository(BaseRepository[Task]):
    """Repository for task CRUD and project-wide task queries."""

    model = Task
    immutable_fields = BaseRepository.immutable_fields + ("project_id",)

    def _select(self):
        return select(Task).options(selectinload(Task.assignee))

    async def list_for_project(self, project_id: int) -> list[dict]:
        """All tasks of a project in creation order, assignee resolved."""
        return await self.list(filters={"project_id": project_id})

    async def list_published_for_project(self, project_id: int) -> list[dict]:
        return await self.list(filters={"project_id": project_id, "published": True})

    async def statuses_for_project(self, project_id: int) -> list[str]:
        stmt = select(Task.status).where(Task.project_id == project_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def ids_for_project(self, project_id: int) -> set[int]:
        stmt = select(Task.id).where(Task.project_id == project_id)
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def create_for_project(self, project_id: int, data: dict[str, Any]) -> dict:
        return await self.create({**data, "project_id": project_id})

    async def delete(self, item_id: int) -> bool:
        """Delete a task together with every edge that touches it."""
        await self.session.execute(
            delete(TaskDependency).where(
                or_(
                    TaskDependency.predecessor_id == item_id,
                    TaskDependency.successor_id == item_id,
                )
            )
        )
        result = await self.session.execute(
            delete(Task)
            .where(Task.id == item_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    async def set_published_for_project(self, project_id: int, published: bool) -> int:
        """Flip ``published`` on every task of a project.

        Returns the number of rows the UPDATE touched.
        """
        now = utcnow()
        stmt = (
            update(Task)
            .where(Task.project_id == project_id)
            .values(
                published=published,
                published_at=now if published else None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount


# ---------------------------------------------------------------------------
# Dependency repository
# ---------------------------------------------------------------------------

def _insert_ignoring_duplicates(dialect_name: str):
    """An INSERT that does nothing when the (predecessor, successor) pair exists."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert

        return pg_insert(TaskDependency).on_conflict_do_nothing(
            index_elements=["predecessor_id", "successor_id"]
        )
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert

        return sqlite_insert(TaskDependency).on_conflict_do_nothing(
            index_elements=["predecessor_id", "successor_id"]
        )
    return insert(TaskDependency)


class DependencyRepository(BaseRepository[TaskDependency]):
    """Repository for directed predecessor -> successor edges."""

    model = TaskDependency

    async def find(self, predecessor_id: int, successor_id: int) -> dict | None:
        stmt = select(TaskDependency).where(
            TaskDependency.predecessor_id == predecessor_id,
            TaskDependency.successor_id == successor_id,
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        return row.to_dict() if row else None

    async def add(
        self,
        predecessor_id: int,
        successor_id: int,
        dependency_type: str = DependencyType.FINISH_TO_START.value,
    ) -> dict:
        """Insert an edge, or hand back the one already stored for the pair."""
        dialect = self.session.get_bind().dialect.name
        stmt = _insert_ignoring_duplicates(dialect).values(
            predecessor_id=predecessor_id,
            successor_id=successor_id,
            type=dependency_type,
            created_at=utcnow(),
        )
        await self.session.execute(stmt)
        edge = await self.find(predecessor_id, successor_id)
        logger.debug("Edge %s -> %s stored as id %s", predecessor_id, successor_id, edge["id"])
        return edge

    async def remove(self, predecessor_id: int, successor_id: int) -> bool:
        stmt = delete(TaskDependency).where(
            TaskDependency.predecessor_id == predecessor_id,
            TaskDependency.successor_id == successor_id,
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def list_for_task(self, task_id: int) -> list[dict]:
        """Edges where the task is either the predecessor or the successor."""
        stmt = (
            select(TaskDependency)
            .where(
                or_(
                    TaskDependency.predecessor_id == task_id,
                    TaskDependency.successor_id == task_id,
                )
            )
            .order_by(TaskDependency.id)
        )
        result = await self.session.execute(stmt)
        return [row.to_dict() for row in result.scalars().all()]

    async def list_for_project(self, project_id: int) -> list[dict]:
        """Edges whose two endpoints both belong to the project."""
        project_task_ids = select(Task.id).where(Task.project_id == project_id)
        stmt = (
            select(TaskDependency)
            .where(
                TaskDependency.predecessor_id.in_(project_task_ids),
                TaskDependency.successor_id.in_(project_task_ids),
            )
            .order_by(TaskDependency.id)
        )
        result = await self.session.execute(stmt)
        return [row.to_dict() for row in result.scalars().all()]

    async def edge_pairs_for_project(self, project_id: int) -> list[tuple[int, int]]:
        return [
            (edge["predecessorId"], edge["successorId"])
            for edge in await self.list_for_project(project_id)
        ]

