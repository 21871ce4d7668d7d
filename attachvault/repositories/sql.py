"""
SQLAlchemy-backed repositories bound to one request session.

Every write runs in a savepoint: a failed statement rolls back only
itself and leaves the request session usable for compensating writes.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from attachvault.core.exceptions import RepositoryException
from attachvault.crud.attachment import crud_attachment
from attachvault.crud.task import crud_task
from attachvault.models.attachment import Attachment
from attachvault.repositories.base import AttachmentRepository, TaskLookup

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Database error while trying to %s: %s", action, exc)
        raise RepositoryException(f"Failed to {action}") from exc


class SQLAttachmentRepository(AttachmentRepository):

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(
        self,
        *,
        task_id: uuid.UUID,
        file_name: str,
        file_type: str,
        file_size: int,
        file_locator: str,
        uploaded_by: uuid.UUID,
    ) -> Attachment:
        with _translate_errors("create attachment"):
            async with self.db.begin_nested():
                return await crud_attachment.create_attachment(
                    self.db,
                    task_id=task_id,
                    file_name=file_name,
                    file_type=file_type,
                    file_size=file_size,
                    file_locator=file_locator,
                    uploaded_by=uploaded_by,
                )

    async def get(self, attachment_id: uuid.UUID) -> Attachment | None:
        with _translate_errors("fetch attachment"):
            return await crud_attachment.get(self.db, attachment_id)

    async def list_by_task(self, task_id: uuid.UUID) -> list[Attachment]:
        with _translate_errors("list attachments"):
            return await crud_attachment.list_by_task(self.db, task_id=task_id)

    async def delete_by_id(self, attachment_id: uuid.UUID) -> None:
        with _translate_errors("delete attachment"):
            async with self.db.begin_nested():
                await crud_attachment.remove(self.db, id=attachment_id)

    async def delete_by_task(self, task_id: uuid.UUID) -> None:
        with _translate_errors("delete task attachments"):
            async with self.db.begin_nested():
                await crud_attachment.remove_by_task(self.db, task_id=task_id)

    async def total_size_by_task(self, task_id: uuid.UUID) -> int:
        with _translate_errors("sum attachment sizes"):
            return await crud_attachment.total_size_by_task(self.db, task_id=task_id)

    async def count_by_task(self, task_id: uuid.UUID) -> int:
        with _translate_errors("count attachments"):
            return await crud_attachment.count_by_task(self.db, task_id=task_id)

    async def update_file_name(
        self, attachment_id: uuid.UUID, file_name: str
    ) -> Attachment | None:
        with _translate_errors("rename attachment"):
            async with self.db.begin_nested():
                attachment = await crud_attachment.get(self.db, attachment_id)
                if attachment is None:
                    return None
                return await crud_attachment.update(
                    self.db, db_obj=attachment, obj_in={"file_name": file_name}
                )

    async def commit(self) -> None:
        """
        Commit the request transaction.
        On failure the session is rolled back so it stays usable.
        """
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.error("Database error while trying to commit attachments: %s", exc)
            await self.db.rollback()
            raise RepositoryException("Failed to commit attachments") from exc


class SQLTaskLookup(TaskLookup):

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def exists(self, task_id: uuid.UUID) -> bool:
        with _translate_errors("look up task"):
            return await crud_task.exists(self.db, id=task_id)
