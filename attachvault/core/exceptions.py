"""
Custom HTTP exceptions and global exception handlers for AttachVault.
All application-level errors are defined here for consistency.
"""
from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


# ── Custom exception classes ──────────────────────────────────────────────────

class AttachVaultException(Exception):
    """Base exception for all AttachVault domain errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code or "ATTACHVAULT_ERROR"
        super().__init__(detail)

    @property
    def extra(self) -> dict[str, Any]:
        """Structured detail rendered alongside the error code."""
        return {}


class NotFoundException(AttachVaultException):
    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} with id '{resource_id}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND",
        )


class ObjectNotFoundException(NotFoundException):
    """The metadata exists but the stored object does not."""

    def __init__(self, locator: str) -> None:
        AttachVaultException.__init__(
            self,
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found in storage",
            error_code="NOT_FOUND",
        )
        self.locator = locator


class UnauthorizedException(AttachVaultException):
    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
        )


class InvalidTokenException(AttachVaultException):
    def __init__(self, detail: str = "Invalid or expired token") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="INVALID_TOKEN",
        )


class ForbiddenException(AttachVaultException):
    def __init__(self, detail: str = "You do not have permission to perform this action") -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN",
        )


class BadRequestException(AttachVaultException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="BAD_REQUEST",
        )


class InvalidFormatException(AttachVaultException):
    def __init__(self, media_type: str | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file format. Allowed formats: PDF, DOCX, XLSX, PNG, JPG",
            error_code="INVALID_FORMAT",
        )
        self.media_type = media_type


class TooManyFilesException(AttachVaultException):
    def __init__(self, max_files: int) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Maximum is {max_files} files at once.",
            error_code="TOO_MANY_FILES",
        )


class FileTooLargeException(AttachVaultException):
    def __init__(self, max_mb: int) -> None:
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds maximum allowed size of {max_mb} MB",
            error_code="FILE_TOO_LARGE",
        )


class QuotaExceededException(AttachVaultException):
    def __init__(self, current_size: int, attempted_size: int, quota_bytes: int) -> None:
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Total file size cannot exceed {quota_bytes // (1024 * 1024)}MB",
            error_code="QUOTA_EXCEEDED",
        )
        self.current_size = current_size
        self.attempted_size = attempted_size
        self.quota_bytes = quota_bytes

    @property
    def extra(self) -> dict[str, Any]:
        return {
            "current_size": self.current_size,
            "attempted_size": self.attempted_size,
        }


class StorageException(AttachVaultException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="STORAGE_FAILURE",
        )


class RepositoryException(AttachVaultException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="REPOSITORY_FAILURE",
        )


# ── Exception handlers ────────────────────────────────────────────────────────

def _error_response(
    status_code: int,
    detail: str,
    error_code: str,
    extra: dict[str, Any] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "error": error_code,
        "detail": detail,
    }
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def attachvault_exception_handler(
    request: Request, exc: AttachVaultException
) -> JSONResponse:
    return _error_response(exc.status_code, exc.detail, exc.error_code, exc.extra)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"]})
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "VALIDATION_ERROR",
            "detail": "Request validation failed",
            "errors": errors,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected internal server error occurred",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI application."""
    app.add_exception_handler(AttachVaultException, attachvault_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
