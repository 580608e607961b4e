"""Media router — multipart uploads to object storage (20/minute per client)."""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_current_user, get_settings
from app.media import controller
from app.media.schemas import UploadResponse
from app.media.service import UploadType
from app.rate_limit import limiter
from shared.models.envelope import ApiResponse
from shared.models.user import Principal

router = APIRouter(prefix="/media", tags=["Media"])


@router.post(
    "/uploads",
    response_model=ApiResponse[UploadResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
    description="Rules depend on ``type``: thumbnails and lesson videos need the owning "
    "course's instructor and an ``entity_id``; avatars and general files are open to any user.",
)
@limiter.limit("20/minute")
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    upload_type: UploadType = Form(UploadType.GENERAL, alias="type"),
    entity_id: UUID | None = Form(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[UploadResponse]:
    return await controller.upload(
        db, principal, settings, file=file, upload_type=upload_type, entity_id=entity_id
    )
