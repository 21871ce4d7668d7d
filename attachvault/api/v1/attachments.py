"""
Attachment routes nested under tasks.
/api/v1/tasks/{task_id}/attachments
Supports multipart/form-data upload of up to MAX_FILES_PER_REQUEST files.
"""
import uuid
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, File, Request, UploadFile, status
from fastapi.responses import Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from attachvault.core.config import settings
from attachvault.core.dependencies import AttachmentServiceDep, CurrentUserId
from attachvault.core.exceptions import (
    BadRequestException,
    FileTooLargeException,
    TooManyFilesException,
)
from attachvault.schemas.attachment import (
    AttachmentList,
    AttachmentRead,
    AttachmentRename,
    DeleteResult,
    FileUpload,
)

router = APIRouter(prefix="/tasks/{task_id}/attachments", tags=["Attachments"])

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def _content_disposition(file_name: str) -> str:
    fallback = file_name.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"


@router.post(
    "",
    response_model=AttachmentList,
    status_code=status.HTTP_201_CREATED,
    summary="Upload file attachments to a task",
)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def upload_attachments(
    request: Request,
    task_id: uuid.UUID,
    user_id: CurrentUserId,
    service: AttachmentServiceDep,
    files: Annotated[list[UploadFile] | None, File()] = None,
) -> AttachmentList:
    if not files:
        raise BadRequestException("No files provided")
    if len(files) > settings.MAX_FILES_PER_REQUEST:
        raise TooManyFilesException(settings.MAX_FILES_PER_REQUEST)

    uploads: list[FileUpload] = []
    for file in files:
        content = await file.read()
        if len(content) > settings.max_file_size_bytes:
            raise FileTooLargeException(settings.MAX_FILE_SIZE_MB)
        uploads.append(
            FileUpload(
                original_name=file.filename or "unknown",
                media_type=file.content_type or "application/octet-stream",
                size_bytes=len(content),
                content=content,
            )
        )

    return await service.upload(task_id, uploads, user_id)


@router.get(
    "",
    response_model=AttachmentList,
    summary="List attachments for a task",
)
async def list_attachments(
    task_id: uuid.UUID,
    user_id: CurrentUserId,
    service: AttachmentServiceDep,
) -> AttachmentList:
    return await service.get(task_id)


@router.get(
    "/count",
    summary="Count attachments of a task",
)
async def count_attachments(
    task_id: uuid.UUID,
    user_id: CurrentUserId,
    service: AttachmentServiceDep,
) -> dict[str, int]:
    return {"count": await service.count(task_id)}


@router.patch(
    "/{attachment_id}",
    response_model=AttachmentRead,
    summary="Rename an attachment",
)
async def rename_attachment(
    task_id: uuid.UUID,
    attachment_id: uuid.UUID,
    body: AttachmentRename,
    user_id: CurrentUserId,
    service: AttachmentServiceDep,
) -> AttachmentRead:
    return await service.rename(task_id, attachment_id, body.file_name)


@router.delete(
    "/{attachment_id}",
    response_model=DeleteResult,
    summary="Delete an attachment (uploader only)",
)
async def delete_attachment(
    task_id: uuid.UUID,
    attachment_id: uuid.UUID,
    user_id: CurrentUserId,
    service: AttachmentServiceDep,
) -> DeleteResult:
    return await service.delete(task_id, attachment_id, user_id)


@router.get(
    "/{attachment_id}/download",
    response_class=Response,
    summary="Download an attachment",
)
async def download_attachment(
    task_id: uuid.UUID,
    attachment_id: uuid.UUID,
    user_id: CurrentUserId,
    service: AttachmentServiceDep,
) -> Response:
    result = await service.download(task_id, attachment_id)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": _content_disposition(result.file_name)},
    )
