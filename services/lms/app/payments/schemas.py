from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.lms.schemas import EnrollmentResponse
from app.models.enums import TransactionStatus


class InitializePaymentRequest(BaseModel):
    course_id: UUID


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: UUID
    reference: str
    course_id: UUID
    amount: Decimal
    currency: str
    status: TransactionStatus
    authorization_url: str | None = None
    paid_at: datetime | None = None
    created_at: datetime


class PaymentVerificationResponse(BaseModel):
    transaction: TransactionResponse
    enrollment: EnrollmentResponse | None = None


class WebhookAck(BaseModel):
    received: bool = True
