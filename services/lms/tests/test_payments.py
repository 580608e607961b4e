import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from app.config import Settings
from app.exceptions import (
    AlreadyEnrolledError,
    CourseIsFreeError,
    InvalidWebhookSignatureError,
    PaymentMethodMismatchError,
    PaymentVerificationError,
    TransactionNotFoundError,
)
from app.lms import service as lms_service
from app.models.enums import PaymentMethod, PaymentStatus, TransactionStatus
from app.payments import paystack, service
from conftest import principal_for
from shared.constants import Role

SECRET = "sk_test_secret"


@pytest.fixture
def settings() -> Settings:
    return Settings(paystack_secret_key=SECRET)


@pytest.fixture
def fake_gateway(monkeypatch):
    calls: list[dict] = []

    async def _initialize(settings, *, email, amount, currency, reference, metadata):
        calls.append({"email": email, "amount": amount, "reference": reference})
        return {"authorization_url": f"https://checkout.paystack.com/{reference}", "reference": reference}

    async def _verify(settings, reference):
        return {"status": "success", "reference": reference, "amount": 1500000, "currency": "NGN"}

    monkeypatch.setattr(paystack, "initialize_transaction", _initialize)
    monkeypatch.setattr(paystack, "verify_transaction", _verify)
    return calls


def _sign(body: bytes) -> str:
    return hmac.new(SECRET.encode(), body, hashlib.sha512).hexdigest()


def test_signature_check() -> None:
    body = b'{"event":"charge.success"}'
    assert paystack.verify_signature(SECRET, body, _sign(body))
    assert not paystack.verify_signature(SECRET, body, _sign(b"tampered"))
    assert not paystack.verify_signature(SECRET, body, None)
    assert not paystack.verify_signature("", body, _sign(body))


def test_minor_units() -> None:
    assert paystack.to_minor_units(Decimal("15000.00")) == 1500000
    assert paystack.from_minor_units(1500050) == Decimal("15000.50")


async def test_initialize_rejects_free_course(make_user, make_course, db_session, settings, fake_gateway) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    with pytest.raises(CourseIsFreeError):
        await service.initialize_payment(db_session, principal_for(student), course.course_id, settings)
    assert fake_gateway == []


async def test_verify_enrolls_once(make_user, make_course, db_session, settings, fake_gateway) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor, price=Decimal("15000"))

    tx = await service.initialize_payment(db_session, principal_for(student), course.course_id, settings)
    assert tx.status == TransactionStatus.PENDING
    assert tx.authorization_url.endswith(tx.reference)
    assert fake_gateway[0]["amount"] == Decimal("15000")

    tx, enrollment, newly_paid = await service.verify_payment(db_session, principal_for(student), tx.reference, settings)
    assert newly_paid
    assert tx.status == TransactionStatus.PAID
    assert enrollment.payment_status == PaymentStatus.PAID
    assert enrollment.amount_paid == Decimal("15000")

    _, again, newly_paid = await service.verify_payment(db_session, principal_for(student), tx.reference, settings)
    assert not newly_paid
    assert again.enrollment_id == enrollment.enrollment_id

    await db_session.refresh(course)
    assert course.enrollment_count == 1

    with pytest.raises(AlreadyEnrolledError):
        await service.initialize_payment(db_session, principal_for(student), course.course_id, settings)


async def test_paid_course_cannot_bypass_payment(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor, price=Decimal("15000"))
    with pytest.raises(PaymentMethodMismatchError):
        await lms_service.enroll(db_session, principal_for(student), course.course_id, PaymentMethod.FREE)


async def test_amount_mismatch_is_rejected(make_user, make_course, db_session, settings, fake_gateway) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor, price=Decimal("15000"))
    tx = await service.initialize_payment(db_session, principal_for(student), course.course_id, settings)

    with pytest.raises(PaymentVerificationError):
        await service.confirm_payment(
            db_session, tx.reference, {"status": "success", "amount": 100, "currency": "NGN"}
        )
    assert tx.status == TransactionStatus.PENDING


async def test_failed_charge_marks_transaction_failed(make_user, make_course, db_session, settings, fake_gateway) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor, price=Decimal("15000"))
    tx = await service.initialize_payment(db_session, principal_for(student), course.course_id, settings)

    tx, enrollment, newly_paid = await service.confirm_payment(db_session, tx.reference, {"status": "abandoned"})
    assert tx.status == TransactionStatus.FAILED
    assert enrollment is None
    assert not newly_paid


async def test_other_users_transaction_is_hidden(make_user, make_course, db_session, settings, fake_gateway) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    payer = await make_user(Role.STUDENT)
    snoop = await make_user(Role.STUDENT)
    course = await make_course(instructor, price=Decimal("15000"))
    tx = await service.initialize_payment(db_session, principal_for(payer), course.course_id, settings)

    with pytest.raises(TransactionNotFoundError):
        await service.verify_payment(db_session, principal_for(snoop), tx.reference, settings)


async def test_webhook_confirms_payment(make_user, make_course, db_session, settings, fake_gateway) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor, price=Decimal("15000"))
    tx = await service.initialize_payment(db_session, principal_for(student), course.course_id, settings)

    body = json.dumps(
        {
            "event": "charge.success",
            "data": {"status": "success", "reference": tx.reference, "amount": 1500000, "currency": "NGN"},
        }
    ).encode()

    with pytest.raises(InvalidWebhookSignatureError):
        await service.handle_webhook(db_session, settings, body, "bad-signature")

    tx, enrollment, newly_paid = await service.handle_webhook(db_session, settings, body, _sign(body))
    assert newly_paid
    assert enrollment.user_id == student.user_id

    # Gateway retries are harmless
    _, _, newly_paid = await service.handle_webhook(db_session, settings, body, _sign(body))
    assert not newly_paid


async def test_webhook_ignores_other_events_and_unknown_references(db_session, settings) -> None:
    other = json.dumps({"event": "transfer.success", "data": {}}).encode()
    assert await service.handle_webhook(db_session, settings, other, _sign(other)) is None

    unknown = json.dumps(
        {"event": "charge.success", "data": {"status": "success", "reference": "tga_missing", "amount": 1}}
    ).encode()
    assert await service.handle_webhook(db_session, settings, unknown, _sign(unknown)) is None


@pytest.mark.parametrize("body", [b"not json", b"[1, 2]"])
async def test_signed_webhook_must_be_a_json_object(db_session, settings, body) -> None:
    with pytest.raises(PaymentVerificationError):
        await service.handle_webhook(db_session, settings, body, _sign(body))
