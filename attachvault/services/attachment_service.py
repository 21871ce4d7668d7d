"""
Attachment business logic service.
Keeps the object store and the metadata repository consistent across
upload, delete, bulk delete, copy, download and rename.

Writes go store-then-record; deletes go object-then-record. An upload
batch is all-or-nothing: if any file fails, everything this request
created is compensated before the original error propagates.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from attachvault.core.config import AttachmentPolicy, settings
from attachvault.core.exceptions import (
    BadRequestException,
    ForbiddenException,
    InvalidFormatException,
    NotFoundException,
    QuotaExceededException,
)
from attachvault.models.attachment import Attachment
from attachvault.repositories.base import AttachmentRepository, TaskLookup
from attachvault.schemas.attachment import (
    AttachmentList,
    AttachmentRead,
    DeleteResult,
    DownloadResult,
    FileUpload,
)
from attachvault.services.validators import check_quota, disambiguate, validate_media_type
from attachvault.storage.base import ObjectStore

logger = logging.getLogger(__name__)


class FileState(str, Enum):
    PENDING = "pending"
    STORED = "stored"
    RECORDED = "recorded"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


_TRANSITIONS: dict[FileState, frozenset[FileState]] = {
    FileState.PENDING: frozenset({FileState.STORED}),
    FileState.STORED: frozenset({FileState.RECORDED, FileState.ROLLED_BACK}),
    FileState.RECORDED: frozenset({FileState.COMMITTED, FileState.ROLLED_BACK}),
    FileState.COMMITTED: frozenset(),
    FileState.ROLLED_BACK: frozenset(),
}


@dataclass
class BatchEntry:
    """Progress of one file through an upload batch."""

    upload: FileUpload
    key: str
    state: FileState = FileState.PENDING
    locator: str | None = None
    attachment: Attachment | None = None
    record_id: uuid.UUID | None = None

    def advance(self, state: FileState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal transition {self.state.value} -> {state.value} for {self.key}"
            )
        self.state = state


@dataclass
class UploadBatch:
    task_id: uuid.UUID
    entries: list[BatchEntry] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(entry.upload.size_bytes for entry in self.entries)

    def states(self) -> list[FileState]:
        return [entry.state for entry in self.entries]

    def in_flight(self) -> list[BatchEntry]:
        """Entries that wrote something and would need compensating."""
        return [
            entry
            for entry in self.entries
            if entry.state in (FileState.STORED, FileState.RECORDED)
        ]


def _storage_key(task_id: uuid.UUID, file_name: str) -> str:
    return f"attachments/{task_id}/{disambiguate(file_name)}"


def _to_list(attachments: Sequence[Attachment], total_size: int) -> AttachmentList:
    return AttachmentList(
        attachments=[AttachmentRead.model_validate(a) for a in attachments],
        total_size=total_size,
    )


class AttachmentService:

    def __init__(
        self,
        *,
        repository: AttachmentRepository,
        object_store: ObjectStore,
        task_lookup: TaskLookup,
        policy: AttachmentPolicy | None = None,
    ) -> None:
        self.repository = repository
        self.object_store = object_store
        self.task_lookup = task_lookup
        self.policy = policy or settings.attachment_policy

    async def upload(
        self,
        task_id: uuid.UUID,
        files: Sequence[FileUpload],
        user_id: uuid.UUID,
    ) -> AttachmentList:
        """
        Store a batch of files against a task.

        Type and quota are checked for the whole batch before any write.
        Returns the created records and the size of this batch only.
        """
        if not await self.task_lookup.exists(task_id):
            raise NotFoundException("Task", str(task_id))
        if not files:
            raise BadRequestException("No files provided")

        for upload in files:
            if not validate_media_type(upload.media_type, self.policy):
                raise InvalidFormatException(upload.media_type)

        # No lock between this read and the writes below; concurrent
        # uploads to the same task can overshoot the quota together.
        current_total = await self.repository.total_size_by_task(task_id)
        quota = check_quota(current_total, (f.size_bytes for f in files), self.policy)
        if not quota.ok:
            raise QuotaExceededException(
                quota.current_size, quota.attempted_size, self.policy.quota_bytes
            )

        batch = UploadBatch(task_id=task_id)
        try:
            for upload in files:
                entry = BatchEntry(upload=upload, key=_storage_key(task_id, upload.original_name))
                batch.entries.append(entry)
                await self._store_and_record(entry, task_id, user_id)
            await self.repository.commit()
        except Exception:
            logger.error(
                "Upload to task %s failed; rolling back %d file(s)",
                task_id,
                len(batch.in_flight()),
            )
            await self._rollback(batch)
            raise

        for entry in batch.entries:
            entry.advance(FileState.COMMITTED)

        logger.info(
            "Uploaded %d attachment(s) (%d bytes) to task %s",
            len(batch.entries),
            batch.total_size,
            task_id,
        )
        return _to_list(
            [entry.attachment for entry in batch.entries if entry.attachment is not None],
            batch.total_size,
        )

    async def get(self, task_id: uuid.UUID) -> AttachmentList:
        attachments = await self.repository.list_by_task(task_id)
        return _to_list(attachments, sum(a.file_size for a in attachments))

    async def count(self, task_id: uuid.UUID) -> int:
        return await self.repository.count_by_task(task_id)

    async def delete(
        self,
        task_id: uuid.UUID,
        attachment_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> DeleteResult:
        """
        Delete one attachment. Only its uploader may do so.
        If the object cannot be removed the record is left in place.
        """
        attachment = await self._get_for_task(task_id, attachment_id)

        if attachment.uploaded_by != user_id:
            raise ForbiddenException("Unauthorized to delete this attachment")

        await self.object_store.delete(attachment.file_locator)
        await self.repository.delete_by_id(attachment.id)

        logger.info("Deleted attachment %s from task %s", attachment_id, task_id)
        return DeleteResult()

    async def delete_all_for_task(self, task_id: uuid.UUID) -> bool:
        """Remove every attachment of a task that is itself being deleted."""
        attachments = await self.repository.list_by_task(task_id)

        for attachment in attachments:
            try:
                await self.object_store.delete(attachment.file_locator)
            except Exception:
                logger.error(
                    "Error deleting %s from storage; continuing",
                    attachment.file_locator,
                    exc_info=True,
                )

        await self.repository.delete_by_task(task_id)
        logger.info("Deleted %d attachment(s) of task %s", len(attachments), task_id)
        return True

    async def copy_all_for_task(
        self,
        source_task_id: uuid.UUID,
        destination_task_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> AttachmentList:
        """
        Copy every attachment of one task to another (recurring task spawn).

        The quota is checked for the whole set up front. After that each
        item is best-effort: failures are logged and skipped. The returned
        total_size is the source total that was admitted by the quota check.
        """
        sources = await self.repository.list_by_task(source_task_id)
        if not sources:
            return AttachmentList(attachments=[], total_size=0)

        source_total = sum(a.file_size for a in sources)
        destination_total = await self.repository.total_size_by_task(destination_task_id)
        quota = check_quota(destination_total, [source_total], self.policy)
        if not quota.ok:
            raise QuotaExceededException(
                quota.current_size, quota.attempted_size, self.policy.quota_bytes
            )

        copied: list[Attachment] = []
        for source in sources:
            try:
                copied.append(await self._copy_one(source, destination_task_id, user_id))
            except Exception:
                logger.warning(
                    "Error copying attachment %s to task %s; skipping",
                    source.id,
                    destination_task_id,
                    exc_info=True,
                )

        logger.info(
            "Copied %d of %d attachment(s) from task %s to task %s",
            len(copied),
            len(sources),
            source_task_id,
            destination_task_id,
        )
        return _to_list(copied, source_total)

    async def download(
        self, task_id: uuid.UUID, attachment_id: uuid.UUID
    ) -> DownloadResult:
        attachment = await self._get_for_task(task_id, attachment_id)
        content = await self.object_store.get(attachment.file_locator)
        return DownloadResult(
            content=content,
            file_name=attachment.file_name,
            media_type=attachment.file_type,
        )

    async def rename(
        self,
        task_id: uuid.UUID,
        attachment_id: uuid.UUID,
        file_name: str,
    ) -> AttachmentRead:
        """Change the display name. The stored object and its key are untouched."""
        file_name = file_name.strip()
        if not file_name:
            raise BadRequestException("File name must not be blank")

        await self._get_for_task(task_id, attachment_id)
        updated = await self.repository.update_file_name(attachment_id, file_name)
        if updated is None:
            raise NotFoundException("Attachment", str(attachment_id))
        return AttachmentRead.model_validate(updated)

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _get_for_task(
        self, task_id: uuid.UUID, attachment_id: uuid.UUID
    ) -> Attachment:
        attachment = await self.repository.get(attachment_id)
        if attachment is None or attachment.task_id != task_id:
            raise NotFoundException("Attachment", str(attachment_id))
        return attachment

    async def _store_and_record(
        self, entry: BatchEntry, task_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        upload = entry.upload
        entry.locator = await self.object_store.put(
            entry.key, upload.content, upload.media_type
        )
        entry.advance(FileState.STORED)

        entry.attachment = await self.repository.create(
            task_id=task_id,
            file_name=upload.original_name,
            file_type=upload.media_type,
            file_size=upload.size_bytes,
            file_locator=entry.locator,
            uploaded_by=user_id,
        )
        entry.record_id = entry.attachment.id
        entry.advance(FileState.RECORDED)

    async def _rollback(self, batch: UploadBatch) -> None:
        """
        Undo every stored or recorded entry of a failed batch.
        The record goes first so a failed cleanup never leaves metadata
        pointing at a removed object. Cleanup errors are logged only.
        """
        for entry in batch.in_flight():
            if entry.state is FileState.RECORDED and entry.record_id is not None:
                try:
                    await self.repository.delete_by_id(entry.record_id)
                except Exception:
                    logger.error(
                        "Error removing record %s during rollback; keeping its object",
                        entry.record_id,
                        exc_info=True,
                    )
                    continue

            try:
                if entry.locator is not None:
                    await self.object_store.delete(entry.locator)
            except Exception:
                logger.error(
                    "Error removing object %s during rollback",
                    entry.locator,
                    exc_info=True,
                )
            entry.advance(FileState.ROLLED_BACK)

    async def _copy_one(
        self,
        source: Attachment,
        destination_task_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Attachment:
        key = _storage_key(destination_task_id, source.file_name)
        locator = await self.object_store.copy(source.file_locator, key, source.file_type)
        try:
            return await self.repository.create(
                task_id=destination_task_id,
                file_name=source.file_name,
                file_type=source.file_type,
                file_size=source.file_size,
                file_locator=locator,
                uploaded_by=user_id,
            )
        except Exception:
            try:
                await self.object_store.delete(locator)
            except Exception:
                logger.error("Error removing orphaned copy %s", locator, exc_info=True)
            raise
