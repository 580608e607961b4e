from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel

from app.media.service import UploadType


class UploadResponse(BaseModel):
    key: str
    url: str
    upload_type: UploadType
    content_type: str
    bytes: int
    width: int | None = None
    height: int | None = None
    entity_id: UUID | None = None
