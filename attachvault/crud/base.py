"""
Generic async CRUD base class.
CRUDAttachment and CRUDTask extend CRUDBase and inherit these methods.
"""
from __future__ import annotations

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from attachvault.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """
    Generic CRUD operations for SQLAlchemy async ORM models.
    Methods flush but never commit; the request session owns the transaction.
    """

    def __init__(self, model: type[ModelType]) -> None:
        self.model = model

    async def get(self, db: AsyncSession, id: uuid.UUID) -> ModelType | None:
        """Fetch a single record by primary key."""
        result = await db.execute(select(self.model).where(self.model.id == id))  # type: ignore[attr-defined]
        return result.scalar_one_or_none()

    async def create_from_dict(
        self, db: AsyncSession, *, obj_in: dict[str, Any]
    ) -> ModelType:
        """Create a new record from a plain dictionary."""
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: dict[str, Any],
    ) -> ModelType:
        """Set the given fields on an existing record."""
        for field, value in obj_in.items():
            setattr(db_obj, field, value)

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def remove(self, db: AsyncSession, *, id: uuid.UUID) -> ModelType | None:
        """Delete a record by primary key. Returns the deleted object or None."""
        db_obj = await self.get(db, id)
        if db_obj is None:
            return None
        await db.delete(db_obj)
        await db.flush()
        return db_obj

    async def exists(self, db: AsyncSession, **filters: Any) -> bool:
        """Return True if any record matches the given keyword filters."""
        query = select(func.count()).select_from(self.model)
        for attr, value in filters.items():
            query = query.where(getattr(self.model, attr) == value)
        result = await db.execute(query)
        return (result.scalar_one() or 0) > 0
