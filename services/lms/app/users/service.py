"""Users service — pure business logic, no FastAPI imports.

Local user rows mirror identity-provider subjects. Roles live only here.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import CannotChangeOwnRoleError, InsufficientRoleError, UserNotFoundError
from app.models.user import User
from app.users import identity_client
from shared.constants import Role, has_permission
from shared.models.user import Principal, TokenClaims

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset({"first_name", "last_name", "bio", "image_url", "email_notifications"})


def _display_name(first_name: str | None, last_name: str | None, fallback: str | None) -> str | None:
    joined = " ".join(p for p in (first_name, last_name) if p)
    return joined or fallback


def _apply_claims(user: User, claims: TokenClaims) -> bool:
    """Copy non-empty identity fields onto the row. Returns True if anything changed."""
    changed = False
    incoming = {
        "email": claims.email or None,
        "first_name": claims.first_name,
        "last_name": claims.last_name,
        "image_url": claims.image_url,
        "name": claims.name or _display_name(claims.first_name, claims.last_name, None),
    }
    for field, value in incoming.items():
        if value and getattr(user, field) != value:
            setattr(user, field, value)
            changed = True
    return changed


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(str(user_id))
    return user


async def get_by_external_id(db: AsyncSession, external_id: str) -> User | None:
    return await db.scalar(select(User).where(User.external_id == external_id))


async def upsert_from_claims(db: AsyncSession, claims: TokenClaims) -> User:
    """Load the row for a verified subject, creating it with role USER on first sight."""
    user = await get_by_external_id(db, claims.external_id)
    if user is None:
        user = User(external_id=claims.external_id, email=claims.email, role=Role.USER)
        _apply_claims(user, claims)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent first request for the same subject won the insert
            await db.rollback()
            existing = await get_by_external_id(db, claims.external_id)
            if existing is None:
                raise
            return existing
        await db.refresh(user)
        logger.info("Created user %s for subject %s", user.user_id, claims.external_id)
        return user

    if _apply_claims(user, claims):
        await db.flush()
        await db.refresh(user)
    return user


async def update_profile(db: AsyncSession, principal: Principal, **fields) -> User:
    user = await get_user(db, principal.id)
    for key, value in fields.items():
        if key in PROFILE_FIELDS:
            setattr(user, key, value)
    if "first_name" in fields or "last_name" in fields:
        user.name = _display_name(user.first_name, user.last_name, user.name)
    await db.flush()
    await db.refresh(user)
    return user


async def assign_student_role(db: AsyncSession, principal: Principal) -> tuple[User, bool]:
    """Promote USER to STUDENT. Idempotent; never demotes a higher role."""
    user = await get_user(db, principal.id)
    if has_permission(user.role, Role.STUDENT):
        return user, False
    user.role = Role.STUDENT
    await db.flush()
    await db.refresh(user)
    return user, True


async def list_users(
    db: AsyncSession,
    *,
    role: Role | None = None,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[User], int]:
    filters = []
    if role is not None:
        filters.append(User.role == role)
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(
            or_(func.lower(User.email).like(pattern), func.lower(User.name).like(pattern))
        )

    total = await db.scalar(select(func.count()).select_from(User).where(*filters))
    result = await db.execute(
        select(User).where(*filters).order_by(User.created_at.desc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def change_role(db: AsyncSession, principal: Principal, user_id: UUID, role: Role) -> User:
    """Admin-only role assignment.

    Guards: caller must be ADMIN, and may not change their own role.
    Happy path last.
    """
    if not has_permission(principal.role, Role.ADMIN):
        raise InsufficientRoleError(Role.ADMIN.value)
    if user_id == principal.id:
        raise CannotChangeOwnRoleError()

    user = await get_user(db, user_id)
    if user.role != role:
        logger.info("Role change for %s: %s -> %s by %s", user_id, user.role.value, role.value, principal.id)
        user.role = role
        await db.flush()
        await db.refresh(user)
    return user


async def sync_from_identity_provider(
    db: AsyncSession, principal: Principal, settings: Settings
) -> dict[str, int]:
    """Bulk upsert every provider user. Existing roles are left untouched."""
    if not has_permission(principal.role, Role.ADMIN):
        raise InsufficientRoleError(Role.ADMIN.value)

    remote_users = await identity_client.fetch_all_users(settings)
    created = updated = 0
    for claims in remote_users:
        user = await get_by_external_id(db, claims.external_id)
        if user is None:
            user = User(external_id=claims.external_id, email=claims.email, role=Role.USER)
            _apply_claims(user, claims)
            db.add(user)
            created += 1
        elif _apply_claims(user, claims):
            updated += 1
    await db.flush()
    logger.info("Identity sync: %d fetched, %d created, %d updated", len(remote_users), created, updated)
    return {"total": len(remote_users), "created": created, "updated": updated}
