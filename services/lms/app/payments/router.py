"""Payments router — Paystack checkout for paid courses.

Routes:
  POST /payments/initialize          Open a checkout (STUDENT+)
  GET  /payments/verify/{reference}  Confirm after the checkout redirect
  POST /payments/webhook             Paystack events (signature-verified, no auth)
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_current_user, get_settings
from app.payments import controller
from app.payments.schemas import (
    InitializePaymentRequest,
    PaymentVerificationResponse,
    TransactionResponse,
    WebhookAck,
)
from shared.models.envelope import ApiResponse
from shared.models.user import Principal

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/initialize",
    response_model=ApiResponse[TransactionResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Start paying for a course",
    description="Returns the Paystack authorization_url to redirect the payer to.",
)
async def initialize_payment(
    body: InitializePaymentRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[TransactionResponse]:
    return await controller.initialize_payment(db, principal, body, settings)


@router.get(
    "/verify/{reference}",
    response_model=ApiResponse[PaymentVerificationResponse],
    summary="Verify a payment",
    description="Idempotent; an already confirmed payment returns its enrollment.",
)
async def verify_payment(
    reference: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[PaymentVerificationResponse]:
    return await controller.verify_payment(db, principal, reference, settings, background_tasks)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Paystack webhook",
    include_in_schema=False,
)
async def paystack_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_paystack_signature: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> WebhookAck:
    body = await request.body()
    return await controller.handle_webhook(db, settings, body, x_paystack_signature, background_tasks)
