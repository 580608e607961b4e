import pytest

from app.exceptions import CannotChangeOwnRoleError, InsufficientRoleError
from app.users import identity_client, service
from conftest import principal_for
from shared.constants import Role
from shared.models.user import TokenClaims


async def test_first_request_creates_user(db_session) -> None:
    claims = TokenClaims(external_id="idp_123", email="ada@example.com", first_name="Ada", last_name="Obi")
    user = await service.upsert_from_claims(db_session, claims)
    assert user.role == Role.USER
    assert user.name == "Ada Obi"

    again = await service.upsert_from_claims(db_session, claims)
    assert again.user_id == user.user_id


async def test_claims_refresh_profile_but_not_role(make_user, db_session) -> None:
    user = await make_user(Role.INSTRUCTOR)
    claims = TokenClaims(external_id=user.external_id, email="new@example.com", image_url="https://img/x.png")
    updated = await service.upsert_from_claims(db_session, claims)
    assert updated.email == "new@example.com"
    assert updated.image_url == "https://img/x.png"
    assert updated.role == Role.INSTRUCTOR


async def test_assign_student_role_is_idempotent(make_user, db_session) -> None:
    user = await make_user(Role.USER)
    promoted, changed = await service.assign_student_role(db_session, principal_for(user))
    assert changed
    assert promoted.role == Role.STUDENT

    again, changed = await service.assign_student_role(db_session, principal_for(promoted))
    assert not changed
    assert again.role == Role.STUDENT


async def test_assign_student_role_never_demotes(make_user, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    user, changed = await service.assign_student_role(db_session, principal_for(instructor))
    assert not changed
    assert user.role == Role.INSTRUCTOR


async def test_change_role_admin_only(make_user, db_session) -> None:
    admin = await make_user(Role.ADMIN)
    instructor = await make_user(Role.INSTRUCTOR)
    target = await make_user(Role.STUDENT)

    with pytest.raises(InsufficientRoleError):
        await service.change_role(db_session, principal_for(instructor), target.user_id, Role.ADMIN)
    with pytest.raises(CannotChangeOwnRoleError):
        await service.change_role(db_session, principal_for(admin), admin.user_id, Role.USER)

    changed = await service.change_role(db_session, principal_for(admin), target.user_id, Role.INSTRUCTOR)
    assert changed.role == Role.INSTRUCTOR


async def test_update_profile_ignores_unknown_fields(make_user, db_session) -> None:
    user = await make_user(Role.STUDENT)
    updated = await service.update_profile(
        db_session, principal_for(user), first_name="Chidi", last_name="Eze", role=Role.ADMIN, bio="Learner"
    )
    assert updated.name == "Chidi Eze"
    assert updated.bio == "Learner"
    assert updated.role == Role.STUDENT


async def test_list_users_filters(make_user, db_session) -> None:
    await make_user(Role.STUDENT, email="kemi@example.com")
    await make_user(Role.INSTRUCTOR, email="tunde@example.com")

    instructors, total = await service.list_users(db_session, role=Role.INSTRUCTOR)
    assert total == 1
    assert instructors[0].email == "tunde@example.com"

    found, found_total = await service.list_users(db_session, search="KEMI")
    assert found_total == 1


async def test_sync_from_identity_provider(make_user, db_session, monkeypatch) -> None:
    admin = await make_user(Role.ADMIN)
    existing = await make_user(Role.INSTRUCTOR)

    async def _fake_fetch(settings):
        return [
            TokenClaims(external_id=existing.external_id, email="renamed@example.com"),
            TokenClaims(external_id="idp_new", email="fresh@example.com"),
        ]

    monkeypatch.setattr(identity_client, "fetch_all_users", _fake_fetch)
    result = await service.sync_from_identity_provider(db_session, principal_for(admin), settings=None)
    assert result == {"total": 2, "created": 1, "updated": 1}

    await db_session.refresh(existing)
    assert existing.role == Role.INSTRUCTOR
    assert existing.email == "renamed@example.com"
