"""Paystack REST client and webhook signature check.

Amounts cross the wire in minor units (kobo for NGN); everything above
this module works in major units.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any

import httpx

from app.config import Settings
from app.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def verify_signature(secret_key: str, body: bytes, signature: str | None) -> bool:
    """HMAC-SHA512 of the raw request body, hex encoded, keyed with the secret key."""
    if not secret_key or not signature:
        return False
    expected = hmac.new(secret_key.encode(), body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


def _client(settings: Settings) -> httpx.AsyncClient:
    if not settings.paystack_secret_key:
        raise PaymentGatewayError("Paystack secret key is not configured")
    return httpx.AsyncClient(
        base_url=settings.paystack_base_url,
        headers={"Authorization": f"Bearer {settings.paystack_secret_key}"},
        timeout=httpx.Timeout(settings.paystack_timeout_secs, connect=3.0),
    )


def _unwrap(response: httpx.Response) -> dict[str, Any]:
    response.raise_for_status()
    body = response.json()
    if not body.get("status"):
        raise PaymentGatewayError(body.get("message") or "Paystack request failed")
    return body.get("data") or {}


async def initialize_transaction(
    settings: Settings,
    *,
    email: str,
    amount: Decimal,
    currency: str,
    reference: str,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Returns Paystack's ``data``: authorization_url, access_code, reference."""
    payload = {
        "email": email,
        "amount": to_minor_units(amount),
        "currency": currency,
        "reference": reference,
        "callback_url": settings.paystack_callback_url,
        "metadata": metadata or {},
    }
    async with _client(settings) as client:
        try:
            response = await client.post("/transaction/initialize", json=payload)
            return _unwrap(response)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Paystack initialize failed for %s: %s", reference, exc)
            raise PaymentGatewayError("Payment gateway is unavailable") from exc


async def verify_transaction(settings: Settings, reference: str) -> dict[str, Any]:
    """Returns Paystack's ``data``: status, amount (minor units), currency, reference."""
    async with _client(settings) as client:
        try:
            response = await client.get(f"/transaction/verify/{reference}")
            return _unwrap(response)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Paystack verify failed for %s: %s", reference, exc)
            raise PaymentGatewayError("Payment gateway is unavailable") from exc
