"""
In-process repositories.
Records are transient Attachment instances kept in insertion order; used by
tests and by local runs that have no database.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from attachvault.models.attachment import Attachment
from attachvault.repositories.base import AttachmentRepository, TaskLookup


class InMemoryAttachmentRepository(AttachmentRepository):

    def __init__(self) -> None:
        self.records: dict[uuid.UUID, Attachment] = {}

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
        attachment = Attachment(
            id=uuid.uuid4(),
            task_id=task_id,
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
            file_locator=file_locator,
            uploaded_by=uploaded_by,
            uploaded_at=datetime.now(timezone.utc),
        )
        self.records[attachment.id] = attachment
        return attachment

    async def get(self, attachment_id: uuid.UUID) -> Attachment | None:
        return self.records.get(attachment_id)

    async def list_by_task(self, task_id: uuid.UUID) -> list[Attachment]:
        return [a for a in self.records.values() if a.task_id == task_id]

    async def delete_by_id(self, attachment_id: uuid.UUID) -> None:
        self.records.pop(attachment_id, None)

    async def delete_by_task(self, task_id: uuid.UUID) -> None:
        for attachment in await self.list_by_task(task_id):
            del self.records[attachment.id]

    async def total_size_by_task(self, task_id: uuid.UUID) -> int:
        return sum(a.file_size for a in await self.list_by_task(task_id))

    async def count_by_task(self, task_id: uuid.UUID) -> int:
        return len(await self.list_by_task(task_id))

    async def update_file_name(
        self, attachment_id: uuid.UUID, file_name: str
    ) -> Attachment | None:
        attachment = self.records.get(attachment_id)
        if attachment is not None:
            attachment.file_name = file_name
        return attachment

    async def commit(self) -> None:
        pass


class InMemoryTaskLookup(TaskLookup):

    def __init__(self, task_ids: set[uuid.UUID] | None = None) -> None:
        self.task_ids: set[uuid.UUID] = set(task_ids or ())

    def add(self, task_id: uuid.UUID) -> uuid.UUID:
        self.task_ids.add(task_id)
        return task_id

    async def exists(self, task_id: uuid.UUID) -> bool:
        return task_id in self.task_ids
