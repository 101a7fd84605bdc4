"""Base CRUD service.

Service classes inherit from this for standard read/create/update with
pagination and simple equality filters. Writes are flushed, not
committed; the request-scoped session commits at the end of the request.
"""

from typing import Any, Generic, Optional, Sequence, Type, TypeVar
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseService(Generic[ModelType]):
    """Generic CRUD service for any SQLAlchemy model.

    Usage:
        class WorkflowService(BaseService[Workflow]):
            def __init__(self, db: AsyncSession):
                super().__init__(Workflow, db)
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    # ─── Read ──────────────────────────────────────────────

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        """Get a single record by ID."""
        result = await self.db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def list(
        self,
        offset: int = 0,
        limit: int = 50,
        order_by: str = "created_at",
        order_desc: bool = True,
        filters: dict[str, Any] = None,
    ) -> tuple[Sequence[ModelType], int]:
        """List records with pagination, filtering, and sorting.

        None-valued filters are ignored; list values become IN clauses.

        Returns:
            Tuple of (items, total_count)
        """
        query = select(self.model)
        count_query = select(func.count()).select_from(self.model)

        for field, value in (filters or {}).items():
            if value is None or not hasattr(self.model, field):
                continue
            col = getattr(self.model, field)
            clause = col.in_(value) if isinstance(value, list) else col == value
            query = query.where(clause)
            count_query = count_query.where(clause)

        if hasattr(self.model, order_by):
            col = getattr(self.model, order_by)
            query = query.order_by(col.desc() if order_desc else col.asc())

        result = await self.db.execute(query.offset(offset).limit(limit))
        items = result.scalars().all()

        count_result = await self.db.execute(count_query)
        total = count_result.scalar() or 0

        return items, total

    # ─── Create ────────────────────────────────────────────

    async def create(self, data: dict[str, Any]) -> ModelType:
        """Create a new record.

        Args:
            data: Dict of field values

        Returns:
            Created model instance
        """
        if "id" not in data:
            data["id"] = str(uuid4())

        instance = self.model(**data)
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    # ─── Update ────────────────────────────────────────────

    async def update(self, id: str, data: dict[str, Any]) -> Optional[ModelType]:
        """Update a record by ID.

        Args:
            id: Record UUID
            data: Dict of fields to update (None values are skipped)

        Returns:
            Updated model instance or None if not found
        """
        instance = await self.get_by_id(id)
        if not instance:
            return None

        for key, value in data.items():
            if value is not None and hasattr(instance, key):
                setattr(instance, key, value)

        await self.db.flush()
        await self.db.refresh(instance)
        return instance
