"""Media uploads — type rules, image inspection and storage.

Upload types:
  course-thumbnail  INSTRUCTOR+, owner of ``entity_id`` course, image
  lesson-video      INSTRUCTOR+, owner of ``entity_id`` lesson's course, video
  user-avatar       any principal, image
  general           any principal, image, video or PDF

Pure business logic, no FastAPI imports.
"""

from __future__ import annotations

import enum
import io
import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from PIL import Image, UnidentifiedImageError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import InsufficientRoleError, InvalidUploadError, UploadTooLargeError
from app.lms import service as lms_service
from app.media import s3
from shared.constants import Role, has_permission
from shared.models.user import Principal

logger = logging.getLogger(__name__)


class UploadType(str, enum.Enum):
    COURSE_THUMBNAIL = "course-thumbnail"
    LESSON_VIDEO = "lesson-video"
    USER_AVATAR = "user-avatar"
    GENERAL = "general"


IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})
VIDEO_CONTENT_TYPES = frozenset(
    {"video/mp4", "video/quicktime", "video/webm", "video/x-matroska", "video/x-msvideo"}
)
DOCUMENT_CONTENT_TYPES = frozenset({"application/pdf"})


@dataclass(frozen=True)
class UploadRule:
    folder: str
    min_role: Role
    entity_required: bool
    content_types: frozenset[str]


UPLOAD_RULES: dict[UploadType, UploadRule] = {
    UploadType.COURSE_THUMBNAIL: UploadRule("courses/thumbnails", Role.INSTRUCTOR, True, IMAGE_CONTENT_TYPES),
    UploadType.LESSON_VIDEO: UploadRule("courses/videos", Role.INSTRUCTOR, True, VIDEO_CONTENT_TYPES),
    UploadType.USER_AVATAR: UploadRule("users/avatars", Role.USER, False, IMAGE_CONTENT_TYPES),
    UploadType.GENERAL: UploadRule(
        "general",
        Role.USER,
        False,
        IMAGE_CONTENT_TYPES | VIDEO_CONTENT_TYPES | DOCUMENT_CONTENT_TYPES,
    ),
}


def image_dimensions(data: bytes) -> tuple[int, int]:
    """Width and height read from the image header; rejects undecodable files."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidUploadError("File is not a readable image") from exc


def _size_limit(content_type: str, settings: Settings) -> int:
    if content_type in IMAGE_CONTENT_TYPES:
        return settings.max_image_upload_bytes
    return settings.max_upload_bytes


async def _check_entity(
    db: AsyncSession,
    principal: Principal,
    upload_type: UploadType,
    entity_id: UUID,
) -> None:
    if upload_type == UploadType.COURSE_THUMBNAIL:
        course = await lms_service.get_course_by_id(db, entity_id)
    else:
        lesson = await lms_service.get_lesson_by_id(db, entity_id)
        course = await lms_service.get_course_by_id(db, await lms_service.get_lesson_course_id(db, lesson))
    lms_service._ensure_can_manage(principal, course)


async def upload(
    db: AsyncSession,
    principal: Principal,
    settings: Settings,
    *,
    upload_type: UploadType,
    filename: str,
    content_type: str,
    data: bytes,
    entity_id: UUID | None = None,
) -> dict[str, Any]:
    rule = UPLOAD_RULES[upload_type]
    if not has_permission(principal.role, rule.min_role):
        raise InsufficientRoleError(rule.min_role.value)
    if rule.entity_required and entity_id is None:
        raise InvalidUploadError(f"entity_id is required for {upload_type.value} uploads")

    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type not in rule.content_types:
        raise InvalidUploadError(f"Unsupported content type for {upload_type.value}: {content_type or 'unknown'}")
    if not data:
        raise InvalidUploadError("File is empty")
    limit = _size_limit(content_type, settings)
    if len(data) > limit:
        raise UploadTooLargeError(limit)

    if rule.entity_required:
        await _check_entity(db, principal, upload_type, entity_id)

    width = height = None
    if content_type in IMAGE_CONTENT_TYPES:
        width, height = image_dimensions(data)

    owner = entity_id if rule.entity_required else principal.id
    key = s3.media_key(rule.folder, owner, filename or "upload")
    url = await s3.put_object(key, data, content_type, settings)
    logger.info("Uploaded %s (%d bytes) as %s for %s", upload_type.value, len(data), key, principal.id)
    return {
        "key": key,
        "url": url,
        "upload_type": upload_type,
        "content_type": content_type,
        "bytes": len(data),
        "width": width,
        "height": height,
        "entity_id": entity_id,
    }
