import os

# Must be set before the app (and its rate limiter) is imported
os.environ["ENV_NAME"] = "test"
os.environ["REDIS_URL"] = "memory://"

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import init_db
from app.lms import service as lms_service
from app.main import create_app
from app.models.course import Course
from app.models.course_module import CourseModule
from app.models.lesson import Lesson
from app.models.user import User
from shared.auth.config import AuthSettings
from shared.constants import Role
from shared.database.postgres import Base
from shared.models.user import Principal

TEST_DATABASE_URL = "sqlite+aiosqlite://"


def make_token(external_id: str, email: str = "", **extra: object) -> str:
    settings = AuthSettings()
    claims = {
        "sub": external_id,
        "email": email,
        "iss": settings.issuer,
        "aud": settings.audience,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        **extra,
    }
    return jwt.encode(claims, settings.secret, algorithm=settings.algorithm)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user.external_id, user.email)}"}


def principal_for(user: User) -> Principal:
    return Principal(id=user.user_id, external_id=user.external_id, email=user.email, role=user.role)


async def course_lessons(db: AsyncSession, course: Course) -> list[Lesson]:
    result = await db.execute(
        select(Lesson)
        .join(CourseModule, Lesson.module_id == CourseModule.module_id)
        .where(CourseModule.course_id == course.course_id)
        .order_by(CourseModule.sort_order, Lesson.sort_order)
    )
    return list(result.scalars().all())


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    factory = init_db(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    engine = factory.kw["bind"]
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def _make(role: Role = Role.STUDENT, email: str | None = None) -> User:
        external_id = f"user_{uuid4().hex[:12]}"
        user = User(
            external_id=external_id,
            email=email or f"{external_id}@example.com",
            name="Test User",
            role=role,
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_course(db_session: AsyncSession) -> Callable[..., Awaitable[Course]]:
    """Published course with one module of ``lessons`` published video lessons."""

    async def _make(
        instructor: User,
        *,
        price: Decimal = Decimal("0"),
        lessons: int = 4,
        publish: bool = True,
        title: str | None = None,
    ) -> Course:
        return await lms_service.create_course(
            db_session,
            principal_for(instructor),
            title=title or f"Course {uuid4().hex[:6]}",
            price=price,
            publish=publish,
            modules=[
                {
                    "title": "Module 1",
                    "lessons": [
                        {"title": f"Lesson {i + 1}", "duration_secs": 600}
                        for i in range(lessons)
                    ],
                }
            ],
        )

    return _make
