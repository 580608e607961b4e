"""Read-only client for the identity provider's user-list API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.config import Settings
from app.exceptions import IdentityServiceError
from shared.models.user import TokenClaims

logger = logging.getLogger(__name__)


def _to_claims(raw: dict[str, Any]) -> TokenClaims | None:
    external_id = raw.get("id")
    if not external_id:
        return None
    emails = raw.get("email_addresses") or []
    email = emails[0].get("email_address", "") if emails else ""
    first_name = raw.get("first_name")
    last_name = raw.get("last_name")
    name = " ".join(p for p in (first_name, last_name) if p) or raw.get("username")
    return TokenClaims(
        external_id=str(external_id),
        email=email or "",
        name=name,
        first_name=first_name,
        last_name=last_name,
        image_url=raw.get("image_url"),
    )


async def fetch_all_users(settings: Settings) -> list[TokenClaims]:
    """Page through ``GET /users`` until a short page comes back."""
    if not settings.identity_api_key:
        raise IdentityServiceError("Identity provider API key is not configured")

    headers = {"Authorization": f"Bearer {settings.identity_api_key}"}
    timeout = httpx.Timeout(10.0, connect=3.0)
    page_size = settings.identity_sync_page_size
    users: list[TokenClaims] = []
    offset = 0

    async with httpx.AsyncClient(
        base_url=settings.identity_api_url, headers=headers, timeout=timeout
    ) as client:
        while True:
            try:
                response = await client.get("/users", params={"limit": page_size, "offset": offset})
                response.raise_for_status()
                page = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("Identity provider user list failed at offset %d: %s", offset, exc)
                raise IdentityServiceError("Identity provider is unavailable") from exc

            if not isinstance(page, list):
                page = page.get("data", []) if isinstance(page, dict) else []
            users.extend(c for c in (_to_claims(raw) for raw in page) if c is not None)
            if len(page) < page_size:
                break
            offset += page_size

    return users
