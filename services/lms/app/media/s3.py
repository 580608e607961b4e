"""AWS S3 helpers for direct (server-side) media uploads."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from app.exceptions import StorageError

logger = logging.getLogger(__name__)


def media_key(folder: str, owner_id: uuid.UUID | str, original_filename: str) -> str:
    """Build a unique S3 key, keeping only the file extension from the client name."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    uid = uuid.uuid4().hex[:8]
    ext = ""
    if "." in original_filename:
        ext = "." + original_filename.rsplit(".", 1)[-1].lower()
    return f"{folder}/{owner_id}/{ts}_{uid}{ext}"


def public_url(key: str, settings: Settings) -> str:
    if settings.s3_public_base_url:
        return f"{settings.s3_public_base_url.rstrip('/')}/{key}"
    return f"https://{settings.s3_bucket_media}.s3.{settings.aws_region}.amazonaws.com/{key}"


def _s3_session(settings: Settings) -> aioboto3.Session:
    return aioboto3.Session(
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )


async def put_object(key: str, data: bytes, content_type: str, settings: Settings) -> str:
    """Upload bytes and return the public URL."""
    if not settings.aws_access_key_id:
        raise StorageError("S3 credentials are not configured")
    try:
        async with _s3_session(settings).client("s3") as s3:
            await s3.put_object(
                Bucket=settings.s3_bucket_media,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
    except (BotoCoreError, ClientError) as exc:
        logger.error("S3 put_object failed for key %s: %s", key, exc)
        raise StorageError("Upload to storage failed") from exc
    return public_url(key, settings)
