"""Request-scoped principal resolution.

The bearer token authenticates; the stored ``users.role`` authorizes.
The first authenticated request for a subject creates its ``users`` row.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.models.user import User
from app.users import service as users_service
from shared.auth.dependencies import get_token_claims_optional, get_token_claims_required
from shared.constants import Role, has_permission
from shared.models.user import Principal, TokenClaims


def get_settings() -> Settings:
    return Settings()


def _to_principal(user: User) -> Principal:
    return Principal(
        id=user.user_id,
        external_id=user.external_id,
        email=user.email,
        role=user.role,
    )


async def get_current_user(
    claims: TokenClaims = Depends(get_token_claims_required),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    user = await users_service.upsert_from_claims(db, claims)
    return _to_principal(user)


async def get_optional_user(
    claims: TokenClaims | None = Depends(get_token_claims_optional),
    db: AsyncSession = Depends(get_db),
) -> Principal | None:
    """Returns the principal if a valid JWT is present, None for anonymous requests."""
    if claims is None:
        return None
    user = await users_service.upsert_from_claims(db, claims)
    return _to_principal(user)


def require_role(required: Role) -> Callable[..., Awaitable[Principal]]:
    """Dependency factory: 403 unless the principal ranks at or above ``required``."""

    async def _checker(principal: Principal = Depends(get_current_user)) -> Principal:
        if not has_permission(principal.role, required):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires {required.value} role or higher",
            )
        return principal

    return _checker
