"""
Attachment CRUD operations.
"""
from __future__ import annotations

import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from attachvault.crud.base import CRUDBase
from attachvault.models.attachment import Attachment


class CRUDAttachment(CRUDBase[Attachment]):

    async def create_attachment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        file_name: str,
        file_type: str,
        file_size: int,
        file_locator: str,
        uploaded_by: uuid.UUID,
    ) -> Attachment:
        return await self.create_from_dict(
            db,
            obj_in={
                "task_id": task_id,
                "file_name": file_name,
                "file_type": file_type,
                "file_size": file_size,
                "file_locator": file_locator,
                "uploaded_by": uploaded_by,
            },
        )

    async def list_by_task(
        self, db: AsyncSession, *, task_id: uuid.UUID
    ) -> list[Attachment]:
        result = await db.execute(
            select(Attachment)
            .where(Attachment.task_id == task_id)
            .order_by(Attachment.uploaded_at.asc(), Attachment.id.asc())
        )
        return list(result.scalars().all())

    async def total_size_by_task(self, db: AsyncSession, *, task_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(Attachment.file_size), 0)).where(
                Attachment.task_id == task_id
            )
        )
        return int(result.scalar_one())

    async def count_by_task(self, db: AsyncSession, *, task_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Attachment)
            .where(Attachment.task_id == task_id)
        )
        return result.scalar_one()

    async def remove_by_task(self, db: AsyncSession, *, task_id: uuid.UUID) -> int:
        """Bulk delete every attachment row of a task. Returns the row count."""
        result = await db.execute(
            delete(Attachment)
            .where(Attachment.task_id == task_id)
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount or 0


crud_attachment = CRUDAttachment(Attachment)
