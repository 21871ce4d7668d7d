"""
FastAPI dependency injection functions.
Provides get_db, get_current_user_id, get_object_store and get_attachment_service.
"""
from __future__ import annotations

import uuid
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from attachvault.core.config import settings
from attachvault.core.exceptions import InvalidTokenException, UnauthorizedException
from attachvault.core.security import decode_access_token
from attachvault.db.session import get_db
from attachvault.repositories.sql import SQLAttachmentRepository, SQLTaskLookup
from attachvault.services.attachment_service import AttachmentService
from attachvault.storage.base import ObjectStore
from attachvault.storage.local import LocalObjectStore
from attachvault.storage.memory import InMemoryObjectStore

# Re-export get_db so routes can import from one place
__all__ = [
    "get_db",
    "get_current_user_id",
    "get_object_store",
    "get_attachment_service",
    "CurrentUserId",
    "AttachmentServiceDep",
]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> uuid.UUID:
    """
    Extract and validate the JWT access token from the Authorization header.
    Returns the user id carried in the token subject.
    """
    if credentials is None:
        raise UnauthorizedException("User authentication required")

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise InvalidTokenException("Invalid or expired access token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise InvalidTokenException("Malformed token: missing subject")

    try:
        return uuid.UUID(user_id_str)
    except ValueError:
        raise InvalidTokenException("Malformed token: invalid subject format")


@lru_cache
def get_object_store() -> ObjectStore:
    """One store per process, chosen by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "memory":
        return InMemoryObjectStore(bucket=settings.STORAGE_BUCKET)
    return LocalObjectStore(settings.STORAGE_DIR, bucket=settings.STORAGE_BUCKET)


async def get_attachment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
) -> AttachmentService:
    return AttachmentService(
        repository=SQLAttachmentRepository(db),
        object_store=object_store,
        task_lookup=SQLTaskLookup(db),
        policy=settings.attachment_policy,
    )


# Convenience type aliases for route signatures
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
AttachmentServiceDep = Annotated[AttachmentService, Depends(get_attachment_service)]
