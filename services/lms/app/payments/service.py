"""Payments service — Paystack checkout for paid courses.

A paid enrollment exists only after the gateway confirms the charge,
either through the signed webhook or the payer's verify call. Both paths
end in ``confirm_payment``, which is idempotent on the transaction
reference.

Pure business logic, no FastAPI imports.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import (
    AlreadyEnrolledError,
    CourseIsFreeError,
    CourseNotPublishedError,
    InsufficientRoleError,
    InvalidWebhookSignatureError,
    PaymentVerificationError,
    TransactionNotFoundError,
)
from app.lms import service as lms_service
from app.models.enrollment import Enrollment
from app.models.enums import CourseStatus, TransactionStatus
from app.models.payment_transaction import PaymentTransaction
from app.payments import paystack
from shared.constants import Role, has_permission
from shared.models.user import Principal

logger = logging.getLogger(__name__)

_FAILED_GATEWAY_STATUSES = frozenset({"failed", "abandoned", "reversed"})


def _new_reference() -> str:
    return f"tga_{uuid.uuid4().hex}"


async def get_transaction(db: AsyncSession, reference: str) -> PaymentTransaction:
    tx = await db.scalar(select(PaymentTransaction).where(PaymentTransaction.reference == reference))
    if tx is None:
        raise TransactionNotFoundError(reference)
    return tx


async def initialize_payment(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    settings: Settings,
) -> PaymentTransaction:
    """Open a PENDING transaction and a Paystack checkout for a paid course."""
    if not has_permission(principal.role, Role.STUDENT):
        raise InsufficientRoleError(Role.STUDENT.value)

    course = await lms_service.get_course_by_id(db, course_id)
    if course.status != CourseStatus.PUBLISHED:
        raise CourseNotPublishedError()
    if course.is_free:
        raise CourseIsFreeError()
    if await lms_service._get_enrollment(db, principal.id, course_id) is not None:
        raise AlreadyEnrolledError()

    reference = _new_reference()
    tx = PaymentTransaction(
        reference=reference,
        user_id=principal.id,
        course_id=course_id,
        amount=course.price,
        currency=course.currency,
        status=TransactionStatus.PENDING,
    )
    db.add(tx)
    await db.flush()

    data = await paystack.initialize_transaction(
        settings,
        email=principal.email,
        amount=course.price,
        currency=course.currency,
        reference=reference,
        metadata={"course_id": str(course_id), "user_id": str(principal.id)},
    )
    tx.authorization_url = data.get("authorization_url")
    await db.flush()
    await db.refresh(tx)
    logger.info("Payment %s initialized for course %s by %s", reference, course_id, principal.id)
    return tx


async def confirm_payment(
    db: AsyncSession,
    reference: str,
    gateway_data: dict[str, Any],
) -> tuple[PaymentTransaction, Enrollment | None, bool]:
    """Apply a gateway result to the transaction.

    Returns (transaction, enrollment, newly_paid). A transaction that is
    already PAID returns its enrollment unchanged; a failed charge marks
    it FAILED; a pending charge leaves it alone.
    """
    tx = await get_transaction(db, reference)
    course = await lms_service.get_course_by_id(db, tx.course_id)

    if tx.status == TransactionStatus.PAID:
        enrollment = await lms_service._get_enrollment(db, tx.user_id, tx.course_id)
        return tx, enrollment, False

    gateway_status = str(gateway_data.get("status", "")).lower()
    if gateway_status in _FAILED_GATEWAY_STATUSES:
        tx.status = TransactionStatus.FAILED
        await db.flush()
        logger.info("Payment %s marked FAILED (gateway status %s)", reference, gateway_status)
        return tx, None, False
    if gateway_status != "success":
        return tx, None, False

    paid_minor = int(gateway_data.get("amount") or 0)
    if paid_minor != paystack.to_minor_units(tx.amount):
        logger.warning(
            "Payment %s amount mismatch: expected %s, gateway reported %s",
            reference, paystack.to_minor_units(tx.amount), paid_minor,
        )
        raise PaymentVerificationError("Paid amount does not match the course price")
    currency = gateway_data.get("currency")
    if currency and currency.upper() != tx.currency.upper():
        raise PaymentVerificationError("Paid currency does not match the course currency")

    tx.status = TransactionStatus.PAID
    tx.paid_at = datetime.now(timezone.utc)
    enrollment = await lms_service.create_paid_enrollment(
        db, tx.user_id, course, reference=reference, amount=tx.amount
    )
    await db.refresh(tx)
    logger.info("Payment %s confirmed; user %s enrolled in %s", reference, tx.user_id, tx.course_id)
    return tx, enrollment, True


async def verify_payment(
    db: AsyncSession,
    principal: Principal,
    reference: str,
    settings: Settings,
) -> tuple[PaymentTransaction, Enrollment | None, bool]:
    """Payer-initiated confirmation after the checkout redirect."""
    tx = await get_transaction(db, reference)
    if tx.user_id != principal.id:
        raise TransactionNotFoundError(reference)
    if tx.status == TransactionStatus.PAID:
        return await confirm_payment(db, reference, {})
    data = await paystack.verify_transaction(settings, reference)
    return await confirm_payment(db, reference, data)


async def handle_webhook(
    db: AsyncSession,
    settings: Settings,
    body: bytes,
    signature: str | None,
) -> tuple[PaymentTransaction, Enrollment | None, bool] | None:
    """Process a signed Paystack event. Only ``charge.success`` changes state.

    Unknown references are logged and acknowledged so the gateway stops retrying.
    """
    if not paystack.verify_signature(settings.paystack_secret_key, body, signature):
        raise InvalidWebhookSignatureError()

    try:
        event = json.loads(body)
    except ValueError as exc:
        raise PaymentVerificationError("Webhook body is not valid JSON") from exc
    if not isinstance(event, dict):
        raise PaymentVerificationError("Webhook body must be a JSON object")
    if event.get("event") != "charge.success":
        logger.debug("Ignoring Paystack event %s", event.get("event"))
        return None

    data = event.get("data") or {}
    reference = data.get("reference")
    if not reference:
        return None
    try:
        return await confirm_payment(db, reference, data)
    except TransactionNotFoundError:
        logger.warning("Paystack webhook for unknown reference %s", reference)
        return None
