"""Integration tests for registration, login and user administration."""

import pytest
from sqlalchemy import select

from gated_calc.database.migrations import seed_roles
from gated_calc.exceptions import AuthenticationError, RegistrationError, StoreError
from gated_calc.models.user import User
from gated_calc.security.permissions import Capability
from gated_calc.services.users import UserDirectory

PASSWORD = "correct-horse-battery"


async def _register(directory, dpi="2000000000001", email="ana@example.com", role="basic", **kwargs):
    return await directory.register(
        dpi,
        kwargs.pop("name", "Ana Lopez"),
        email,
        kwargs.pop("password", PASSWORD),
        role,
    )


@pytest.mark.asyncio
async def test_register_stores_hashed_password(directory, session_factory):
    user = await _register(directory, email="  Ana@Example.com ")

    assert user.role_name == "basic"
    assert user.is_active
    assert user.email == "ana@example.com"
    async with session_factory() as session:
        stored = (await session.execute(select(User).where(User.id == user.id))).scalar_one()
    assert stored.password_hash != PASSWORD
    assert stored.password_hash.startswith("$2")


@pytest.mark.asyncio
async def test_authenticate_opens_session(directory):
    user = await _register(directory, role="premium")

    session = await directory.authenticate("2000000000001", PASSWORD)

    assert session.user_id == user.id
    assert session.name == "Ana Lopez"
    assert session.role.name == "premium"
    assert session.role.daily_limit == 100
    assert session.role.grants(Capability.CALCULATE_BOOLEAN)
    assert not session.role.grants(Capability.MANAGE_USERS)
    assert session.session_id


@pytest.mark.asyncio
async def test_sessions_are_distinct(directory):
    await _register(directory)
    first = await directory.authenticate("2000000000001", PASSWORD)
    second = await directory.authenticate("2000000000001", PASSWORD)
    assert first.session_id != second.session_id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"dpi": "12345"}, "13 digits"),
        ({"dpi": "20000000000a1"}, "13 digits"),
        ({"name": "   "}, "Name"),
        ({"email": "not-an-email"}, "Email"),
        ({"password": "short"}, "at least 8"),
        ({"password": "x" * 73}, "at most 72"),
        ({"role": "superuser"}, "Unknown role"),
    ],
)
async def test_registration_validation(directory, overrides, message):
    with pytest.raises(RegistrationError, match=message):
        await _register(directory, **overrides)


@pytest.mark.asyncio
async def test_duplicate_dpi_or_email(directory):
    await _register(directory)

    with pytest.raises(RegistrationError, match="already registered"):
        await _register(directory, email="other@example.com")
    with pytest.raises(RegistrationError, match="already registered"):
        await _register(directory, dpi="2000000000002")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "dpi, password",
    [("2000000000001", "wrong-password"), ("2999999999999", PASSWORD)],
)
async def test_bad_credentials(directory, dpi, password):
    await _register(directory)
    with pytest.raises(AuthenticationError, match="Invalid DPI or password"):
        await directory.authenticate(dpi, password)


@pytest.mark.asyncio
async def test_deactivated_user_cannot_log_in(directory):
    await _register(directory)

    toggled = await directory.toggle_active("2000000000001")
    assert toggled.is_active is False
    with pytest.raises(AuthenticationError, match="deactivated"):
        await directory.authenticate("2000000000001", PASSWORD)

    toggled = await directory.toggle_active("2000000000001")
    assert toggled.is_active is True
    assert await directory.authenticate("2000000000001", PASSWORD)


@pytest.mark.asyncio
async def test_list_users_sorted_by_name(directory):
    await _register(directory, name="Zoe", dpi="2000000000001", email="zoe@example.com")
    await _register(directory, name="Abel", dpi="2000000000002", email="abel@example.com", role="admin")

    users = await directory.list_users()

    assert [(u.name, u.role_name) for u in users] == [("Abel", "admin"), ("Zoe", "basic")]


@pytest.mark.asyncio
async def test_change_role(directory):
    await _register(directory)

    updated = await directory.change_role("2000000000001", "admin")

    assert updated.role_name == "admin"
    session = await directory.authenticate("2000000000001", PASSWORD)
    assert session.role.grants(Capability.MANAGE_USERS)


@pytest.mark.asyncio
async def test_unknown_user_admin_actions(directory):
    assert await directory.toggle_active("2999999999999") is None
    assert await directory.change_role("2999999999999", "premium") is None
    with pytest.raises(RegistrationError, match="Unknown role"):
        await directory.change_role("2999999999999", "superuser")


@pytest.mark.asyncio
async def test_seed_roles_is_idempotent(session_factory, directory):
    assert await seed_roles(session_factory) == 0
    assert len(await directory.list_roles()) == 3


@pytest.mark.asyncio
async def test_store_failure(broken_session_factory, settings):
    directory = UserDirectory(broken_session_factory, settings=settings)
    with pytest.raises(StoreError) as exc_info:
        await directory.authenticate("2000000000001", PASSWORD)
    assert exc_info.value.store == "users"
