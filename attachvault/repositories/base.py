"""
Repository ports used by the attachment orchestrator.
Implementations raise RepositoryException when the backing store fails.
"""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod

from attachvault.models.attachment import Attachment


class AttachmentRepository(ABC):
    """Durable metadata storage for attachment records."""

    @abstractmethod
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
        """Insert a record; the repository assigns id and uploaded_at."""

    @abstractmethod
    async def get(self, attachment_id: uuid.UUID) -> Attachment | None: ...

    @abstractmethod
    async def list_by_task(self, task_id: uuid.UUID) -> list[Attachment]:
        """All records of a task, oldest upload first."""

    @abstractmethod
    async def delete_by_id(self, attachment_id: uuid.UUID) -> None: ...

    @abstractmethod
    async def delete_by_task(self, task_id: uuid.UUID) -> None: ...

    @abstractmethod
    async def total_size_by_task(self, task_id: uuid.UUID) -> int:
        """Sum of file_size over the task's records, 0 when there are none."""

    @abstractmethod
    async def count_by_task(self, task_id: uuid.UUID) -> int: ...

    @abstractmethod
    async def update_file_name(
        self, attachment_id: uuid.UUID, file_name: str
    ) -> Attachment | None: ...

    @abstractmethod
    async def commit(self) -> None:
        """Make every record written so far durable."""


class TaskLookup(ABC):
    """The one question AttachVault asks the task domain."""

    @abstractmethod
    async def exists(self, task_id: uuid.UUID) -> bool: ...
