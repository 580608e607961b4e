import io

import pytest
from PIL import Image

from app.config import Settings
from app.exceptions import InsufficientRoleError, InvalidUploadError, NotCourseOwnerError, UploadTooLargeError
from app.media import s3, service
from app.media.service import UploadType
from conftest import course_lessons, principal_for
from shared.constants import Role


def _png(width: int = 64, height: int = 48) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        aws_access_key_id="test",
        aws_secret_access_key="test",
        s3_public_base_url="https://cdn.example.com",
        max_image_upload_bytes=50_000,
    )


@pytest.fixture
def stored(monkeypatch) -> list[dict]:
    uploads: list[dict] = []

    async def _put(key, data, content_type, settings):
        uploads.append({"key": key, "bytes": len(data), "content_type": content_type})
        return s3.public_url(key, settings)

    monkeypatch.setattr(s3, "put_object", _put)
    return uploads


def test_media_key_keeps_only_extension() -> None:
    key = s3.media_key("users/avatars", "abc", "My Photo.JPG")
    assert key.startswith("users/avatars/abc/")
    assert key.endswith(".jpg")
    assert "My Photo" not in key


def test_image_dimensions_rejects_garbage() -> None:
    assert service.image_dimensions(_png(10, 20)) == (10, 20)
    with pytest.raises(InvalidUploadError):
        service.image_dimensions(b"not an image")


async def test_avatar_upload(make_user, db_session, settings, stored) -> None:
    user = await make_user(Role.USER)
    result = await service.upload(
        db_session, principal_for(user), settings,
        upload_type=UploadType.USER_AVATAR, filename="me.png", content_type="image/png", data=_png(),
    )
    assert result["width"] == 64
    assert result["height"] == 48
    assert result["url"] == f"https://cdn.example.com/{result['key']}"
    assert result["key"].startswith(f"users/avatars/{user.user_id}/")
    assert stored[0]["content_type"] == "image/png"


async def test_upload_rejects_wrong_type_and_empty_files(make_user, db_session, settings, stored) -> None:
    user = await make_user(Role.USER)
    with pytest.raises(InvalidUploadError):
        await service.upload(
            db_session, principal_for(user), settings,
            upload_type=UploadType.USER_AVATAR, filename="a.mp4", content_type="video/mp4", data=b"x",
        )
    with pytest.raises(InvalidUploadError):
        await service.upload(
            db_session, principal_for(user), settings,
            upload_type=UploadType.GENERAL, filename="a.pdf", content_type="application/pdf", data=b"",
        )
    assert stored == []


async def test_oversized_image_rejected(make_user, db_session, settings, stored) -> None:
    user = await make_user(Role.USER)
    with pytest.raises(UploadTooLargeError):
        await service.upload(
            db_session, principal_for(user), settings,
            upload_type=UploadType.GENERAL, filename="big.png", content_type="image/png",
            data=b"\x89PNG" + b"0" * 60_000,
        )


async def test_thumbnail_needs_course_owner(make_user, make_course, db_session, settings, stored) -> None:
    owner = await make_user(Role.INSTRUCTOR)
    other = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(owner)

    with pytest.raises(InsufficientRoleError):
        await service.upload(
            db_session, principal_for(student), settings,
            upload_type=UploadType.COURSE_THUMBNAIL, filename="t.png", content_type="image/png",
            data=_png(), entity_id=course.course_id,
        )
    with pytest.raises(InvalidUploadError):
        await service.upload(
            db_session, principal_for(owner), settings,
            upload_type=UploadType.COURSE_THUMBNAIL, filename="t.png", content_type="image/png", data=_png(),
        )
    with pytest.raises(NotCourseOwnerError):
        await service.upload(
            db_session, principal_for(other), settings,
            upload_type=UploadType.COURSE_THUMBNAIL, filename="t.png", content_type="image/png",
            data=_png(), entity_id=course.course_id,
        )

    result = await service.upload(
        db_session, principal_for(owner), settings,
        upload_type=UploadType.COURSE_THUMBNAIL, filename="t.png", content_type="image/png",
        data=_png(), entity_id=course.course_id,
    )
    assert result["key"].startswith(f"courses/thumbnails/{course.course_id}/")


async def test_lesson_video_upload(make_user, make_course, db_session, settings, stored) -> None:
    owner = await make_user(Role.INSTRUCTOR)
    course = await make_course(owner)
    lesson = (await course_lessons(db_session, course))[0]

    result = await service.upload(
        db_session, principal_for(owner), settings,
        upload_type=UploadType.LESSON_VIDEO, filename="intro.mp4", content_type="video/mp4",
        data=b"\x00\x00\x00\x18ftypmp42", entity_id=lesson.lesson_id,
    )
    assert result["width"] is None
    assert result["key"].endswith(".mp4")
