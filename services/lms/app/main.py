import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

# Configure application logging so background task logs are visible
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")

from app.assessment.router import router as assessment_router
from app.config import Settings
from app.dashboards.router import router as dashboards_router
from app.database import dispose_db, init_db
from app.lms.router import router as lms_router
from app.media.router import router as media_router
from app.notifications.router import router as notifications_router
from app.payments.router import router as payments_router
from app.rate_limit import limiter
from app.reviews.router import router as reviews_router
from app.users.router import admin_router as users_admin_router
from app.users.router import router as users_router
from shared.middleware.error_handler import (
    error_body,
    error_envelope_middleware,
    register_exception_handlers,
)
from shared.middleware.request_id import request_id_middleware

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return Settings()


class HealthResponse(BaseModel):
    status: str
    service: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db(
        settings.lms_database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        echo=settings.db_echo,
    )
    logger.info("LMS service started (env=%s)", settings.env_name)
    yield
    await dispose_db()


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_body(request, status.HTTP_429_TOO_MANY_REQUESTS, f"Rate limit exceeded: {exc.detail}"),
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


SWAGGER_DESCRIPTION = """\
## TechGetAfrica LMS API

Multi-tenant learning platform: course catalog, enrollment (free and
Paystack-paid), lesson progress, quizzes, reviews, notifications and
role dashboards.

### Domain Tags

| Tag | Description |
|-----|-------------|
| **Users** | Profile, student self-upgrade, admin role management and identity sync |
| **LMS** | Course, module, lesson CRUD + enrollment + progress tracking |
| **Assessment** | Quizzes with server-side grading |
| **Reviews** | Ratings, helpful votes, moderation reports |
| **Payments** | Paystack checkout, verification and webhook |
| **Notifications** | In-app notifications |
| **Dashboards** | Student, instructor and admin summaries |
| **Media** | File uploads to object storage |

### Authentication

Every endpoint except health, the public catalog and the payment webhook
requires a Bearer JWT issued by the identity provider. The token's `sub`
identifies the user; the role is read from the database.

### Roles

`USER < STUDENT < INSTRUCTOR < ADMIN`; each role holds the permissions of
the roles below it.

### Status Transitions

```
Course:     DRAFT -> PUBLISHED -> ARCHIVED
Enrollment: ACTIVE -> COMPLETED (at 100% progress, never reverted)
Lesson:     NOT_STARTED -> IN_PROGRESS -> COMPLETED (at 90% watched, never reverted)
```
"""


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="TechGetAfrica LMS",
        version="0.1.0",
        description=SWAGGER_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    register_exception_handlers(app)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)

    # Last added = outermost; CORS stays outermost so error responses carry CORS headers.
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(users_router, prefix="/api/v1")
    app.include_router(users_admin_router, prefix="/api/v1")
    app.include_router(lms_router, prefix="/api/v1")
    app.include_router(reviews_router, prefix="/api/v1")
    app.include_router(assessment_router, prefix="/api/v1")
    app.include_router(payments_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")
    app.include_router(dashboards_router, prefix="/api/v1")
    app.include_router(media_router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="lms")

    return app


app = create_app()
