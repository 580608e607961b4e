"""Media controller — maps service results to HTTP responses."""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import (
    CourseNotFoundError,
    InsufficientRoleError,
    InvalidUploadError,
    LessonNotFoundError,
    ModuleNotFoundError,
    NotCourseOwnerError,
    StorageError,
    UploadTooLargeError,
)
from app.media import service
from app.media.schemas import UploadResponse
from app.media.service import UploadType
from shared.models.envelope import ApiResponse
from shared.models.user import Principal


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidUploadError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail)
    if isinstance(exc, UploadTooLargeError):
        return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc))
    if isinstance(exc, InsufficientRoleError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, NotCourseOwnerError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the course instructor")
    if isinstance(exc, CourseNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    if isinstance(exc, (LessonNotFoundError, ModuleNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    if isinstance(exc, StorageError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Storage upload failed")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def upload(
    db: AsyncSession,
    principal: Principal,
    settings: Settings,
    *,
    file: UploadFile,
    upload_type: UploadType,
    entity_id: UUID | None,
) -> ApiResponse[UploadResponse]:
    try:
        data = await file.read()
        result = await service.upload(
            db,
            principal,
            settings,
            upload_type=upload_type,
            filename=file.filename or "",
            content_type=file.content_type or "",
            data=data,
            entity_id=entity_id,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    finally:
        await file.close()
    return ApiResponse(data=UploadResponse(**result), message="File uploaded")
