"""Payments controller — maps service results to HTTP responses."""

from __future__ import annotations

from uuid import UUID

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import (
    AlreadyEnrolledError,
    CourseIsFreeError,
    CourseNotFoundError,
    CourseNotPublishedError,
    InsufficientRoleError,
    InvalidWebhookSignatureError,
    PaymentGatewayError,
    PaymentVerificationError,
    TransactionNotFoundError,
)
from app.lms.schemas import EnrollmentResponse
from app.models.enums import NotificationCategory, NotificationType
from app.models.payment_transaction import PaymentTransaction
from app.notifications.dispatch import dispatch_notification
from app.payments import service
from app.payments.schemas import (
    InitializePaymentRequest,
    PaymentVerificationResponse,
    TransactionResponse,
    WebhookAck,
)
from shared.models.envelope import ApiResponse
from shared.models.user import Principal


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, CourseNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    if isinstance(exc, TransactionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    if isinstance(exc, InsufficientRoleError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, AlreadyEnrolledError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already enrolled in this course")
    if isinstance(exc, CourseNotPublishedError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Course is not available for enrollment")
    if isinstance(exc, CourseIsFreeError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This course is free; enroll directly")
    if isinstance(exc, PaymentVerificationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail)
    if isinstance(exc, InvalidWebhookSignatureError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")
    if isinstance(exc, PaymentGatewayError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment gateway error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


def _notify_enrolled(background_tasks: BackgroundTasks, tx: PaymentTransaction) -> None:
    background_tasks.add_task(
        dispatch_notification,
        tx.user_id,
        NotificationType.ENROLLMENT,
        "Payment received",
        "Your payment was confirmed and you are now enrolled. Happy learning!",
        category=NotificationCategory.ACADEMIC,
        action_url=f"/courses/{tx.course_id}",
        payload={"course_id": str(tx.course_id), "reference": tx.reference},
    )


async def initialize_payment(
    db: AsyncSession,
    principal: Principal,
    body: InitializePaymentRequest,
    settings: Settings,
) -> ApiResponse[TransactionResponse]:
    try:
        tx = await service.initialize_payment(db, principal, body.course_id, settings)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=TransactionResponse.model_validate(tx), message="Payment initialized")


async def verify_payment(
    db: AsyncSession,
    principal: Principal,
    reference: str,
    settings: Settings,
    background_tasks: BackgroundTasks,
) -> ApiResponse[PaymentVerificationResponse]:
    try:
        tx, enrollment, newly_paid = await service.verify_payment(db, principal, reference, settings)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    if newly_paid:
        _notify_enrolled(background_tasks, tx)
    return ApiResponse(
        data=PaymentVerificationResponse(
            transaction=TransactionResponse.model_validate(tx),
            enrollment=EnrollmentResponse.model_validate(enrollment) if enrollment else None,
        )
    )


async def handle_webhook(
    db: AsyncSession,
    settings: Settings,
    body: bytes,
    signature: str | None,
    background_tasks: BackgroundTasks,
) -> WebhookAck:
    try:
        outcome = await service.handle_webhook(db, settings, body, signature)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    if outcome is not None:
        tx, _, newly_paid = outcome
        if newly_paid:
            _notify_enrolled(background_tasks, tx)
    return WebhookAck()
