"""Async repository pattern for database access.

Provides a generic base repository with CRUD operations and FastAPI
dependency injection. Verticals subclass this to add domain-specific
queries and to widen the set of columns an update may never touch.

Example: TaskRepository extending BaseRepository.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository with CRUD + filtered listing.

    Subclass and set `model` to your SQLAlchemy model::

        class TaskRepository(BaseRepository[Task]):
            model = Task
            immutable_fields = BaseRepository.immutable_fields + ("project_id",)

            def _select(self):
                return select(Task).options(selectinload(Task.assignee))

    Rows are handed back as ``to_dict()`` payloads, never as live ORM
    objects, so callers cannot trigger lazy loads outside the session.
    """

    model: type[ModelT]
    immutable_fields: tuple[str, ...] = ("id", "created_at", "updated_at")

    def __init__(self, session: AsyncSession):
        self.session = session

    def _select(self) -> Select:
        """Base statement for every read; override to add eager loads."""
        return select(self.model)

    async def _fetch(self, item_id: int) -> ModelT | None:
        stmt = (
            self._select()
            .where(self.model.id == item_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _apply_filters(self, stmt, filters: dict[str, Any] | None):
        if filters:
            for col_name, value in filters.items():
                if hasattr(self.model, col_name) and value is not None:
                    stmt = stmt.where(getattr(self.model, col_name) == value)
        return stmt

    # -- List --

    async def list(self, filters: dict[str, Any] | None = None) -> list[dict]:
        """List all matching items in insertion (id) order."""
        stmt = self._apply_filters(self._select(), filters).order_by(self.model.id)
        result = await self.session.execute(stmt)
        return [row.to_dict() for row in result.scalars().all()]

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        stmt = self._apply_filters(select(func.count()).select_from(self.model), filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    # -- Get by ID --

    async def get(self, item_id: int) -> dict | None:
        """Get a single item by ID."""
        row = await self._fetch(item_id)
        return row.to_dict() if row else None

    # -- Create --

    async def create(self, data: dict[str, Any]) -> dict:
        """Create a new item and return it as freshly read back."""
        item = self.model(**data)
        self.session.add(item)
        await self.session.flush()
        created = await self._fetch(item.id)
        return created.to_dict()

    # -- Update --

    async def update(self, item_id: int, data: dict[str, Any]) -> dict | None:
        """Update an existing item. Returns None if not found.

        Keys naming immutable or unknown columns are ignored.
        """
        item = await self._fetch(item_id)
        if not item:
            return None

        for key, value in data.items():
            if hasattr(item, key) and key not in self.immutable_fields:
                setattr(item, key, value)

        await self.session.flush()
        updated = await self._fetch(item_id)
        return updated.to_dict()

    # -- Delete --

    async def delete(self, item_id: int) -> bool:
        """Delete an item. Returns True if deleted, False if not found."""
        item = await self._fetch(item_id)
        if not item:
            return False

        await self.session.delete(item)
        await self.session.flush()
        return True
