"""
Attachment Pydantic schemas.
Inputs handed to the orchestrator and the response bodies it produces.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class FileUpload(BaseModel):
    """One file of an upload batch, as handed over by the HTTP layer."""

    original_name: str
    media_type: str
    size_bytes: int = Field(ge=0)
    content: bytes = Field(repr=False)


class AttachmentRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    file_name: str
    file_type: str
    file_size: int
    file_locator: str
    uploaded_by: uuid.UUID
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class AttachmentList(BaseModel):
    """Attachments plus the sum of their sizes."""

    attachments: list[AttachmentRead]
    total_size: int


class AttachmentRename(BaseModel):
    file_name: str = Field(max_length=500)

    @field_validator("file_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("file_name must not be blank")
        return v


class DeleteResult(BaseModel):
    message: str = "Attachment deleted successfully"


class DownloadResult(BaseModel):
    content: bytes = Field(repr=False)
    file_name: str
    media_type: str
