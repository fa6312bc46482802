"""User registration, login and administration."""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, get_settings
from ..database.connection import get_session_factory
from ..exceptions import AuthenticationError, RegistrationError, StoreError
from ..models.role import Permission, Role, RolePermission
from ..models.user import User
from ..observability import metrics
from ..security.credentials import (
    MAX_PASSWORD_BYTES,
    hash_password,
    is_valid_dpi,
    verify_password,
)
from ..security.session import RoleInfo, SessionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserSummary:
    """Public view of a user (no credentials)."""

    id: uuid.UUID
    dpi: str
    name: str
    email: str
    role_name: str
    is_active: bool


class UserDirectory:
    """The user store: registration, authentication and admin management."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        settings: Optional[Settings] = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def list_roles(self) -> List[RoleInfo]:
        """All roles, smallest daily limit first."""
        try:
            async with self._session_factory() as session:
                roles = (
                    await session.execute(select(Role).order_by(Role.daily_limit, Role.name))
                ).scalars().all()
                return [await self._role_info(session, role) for role in roles]
        except SQLAlchemyError as e:
            raise self._store_error("Could not load roles", e) from e

    @staticmethod
    async def _role_info(session: AsyncSession, role: Role) -> RoleInfo:
        names = (
            await session.execute(
                select(Permission.name)
                .join(RolePermission, RolePermission.permission_id == Permission.id)
                .where(RolePermission.role_id == role.id)
            )
        ).scalars().all()
        return RoleInfo(
            id=role.id,
            name=role.name,
            permissions=frozenset(names),
            daily_limit=role.daily_limit,
        )

    @staticmethod
    async def _role_by_name(session: AsyncSession, role_name: str) -> Optional[Role]:
        return (
            await session.execute(select(Role).where(Role.name == role_name))
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def _validate_registration(self, dpi: str, name: str, email: str, password: str) -> None:
        if not is_valid_dpi(dpi):
            raise RegistrationError("DPI must be exactly 13 digits")
        if not name.strip():
            raise RegistrationError("Name is required")
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            raise RegistrationError("Email address is not valid")
        if len(password) < self._settings.min_password_length:
            raise RegistrationError(
                f"Password must be at least {self._settings.min_password_length} characters"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise RegistrationError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
            )

    async def register(
        self,
        dpi: str,
        name: str,
        email: str,
        password: str,
        role_name: str,
    ) -> UserSummary:
        """Create a user with a bcrypt-hashed password."""
        dpi, name, email = dpi.strip(), name.strip(), email.strip().lower()
        self._validate_registration(dpi, name, email, password)

        try:
            async with self._session_factory() as session:
                role = await self._role_by_name(session, role_name)
                if role is None:
                    raise RegistrationError(f"Unknown role '{role_name}'")

                existing = await session.execute(
                    select(User.id).where(or_(User.dpi == dpi, User.email == email))
                )
                if existing.first() is not None:
                    raise RegistrationError("DPI or email already registered")

                user = User(
                    dpi=dpi,
                    name=name,
                    email=email,
                    password_hash=hash_password(password, rounds=self._settings.bcrypt_rounds),
                    role_id=role.id,
                    is_active=True,
                )
                session.add(user)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    raise RegistrationError("DPI or email already registered") from e
        except SQLAlchemyError as e:
            raise self._store_error("Could not register user", e) from e

        logger.info("Registered user %s with role '%s'", user.id, role.name)
        return UserSummary(
            id=user.id,
            dpi=user.dpi,
            name=user.name,
            email=user.email,
            role_name=role.name,
            is_active=user.is_active,
        )

    async def authenticate(self, dpi: str, password: str) -> SessionContext:
        """Verify credentials and open a session for an active user."""
        dpi = dpi.strip()
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(User, Role)
                        .join(Role, Role.id == User.role_id)
                        .where(User.dpi == dpi)
                    )
                ).first()

                if row is None:
                    raise AuthenticationError("Invalid DPI or password")
                user, role = row

                if not user.is_active:
                    raise AuthenticationError("Account is deactivated")

                if not verify_password(password, user.password_hash):
                    raise AuthenticationError("Invalid DPI or password")

                role_info = await self._role_info(session, role)
        except SQLAlchemyError as e:
            raise self._store_error("Could not log in", e) from e

        context = SessionContext(
            user_id=user.id,
            dpi=user.dpi,
            name=user.name,
            email=user.email,
            role=role_info,
        )
        logger.info("User %s logged in (role=%s)", user.id, role_info.name)
        return context

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def list_users(self) -> List[UserSummary]:
        try:
            async with self._session_factory() as session:
                rows = (
                    await session.execute(
                        select(User, Role.name)
                        .join(Role, Role.id == User.role_id)
                        .order_by(User.name)
                    )
                ).all()
        except SQLAlchemyError as e:
            raise self._store_error("Could not list users", e) from e
        return [self._summary(user, role_name) for user, role_name in rows]

    async def toggle_active(self, dpi: str) -> Optional[UserSummary]:
        """Flip a user's active flag. Returns None if the DPI is unknown."""
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(User, Role.name)
                        .join(Role, Role.id == User.role_id)
                        .where(User.dpi == dpi.strip())
                    )
                ).first()
                if row is None:
                    return None
                user, role_name = row
                user.is_active = not user.is_active
                await session.commit()
        except SQLAlchemyError as e:
            raise self._store_error("Could not update user", e) from e

        logger.info("User %s %s", user.id, "activated" if user.is_active else "deactivated")
        return self._summary(user, role_name)

    async def change_role(self, dpi: str, role_name: str) -> Optional[UserSummary]:
        """Move a user to another role. Returns None if the DPI is unknown.

        Quota rows already opened keep the limit they were created with.
        """
        try:
            async with self._session_factory() as session:
                role = await self._role_by_name(session, role_name)
                if role is None:
                    raise RegistrationError(f"Unknown role '{role_name}'")
                user = (
                    await session.execute(select(User).where(User.dpi == dpi.strip()))
                ).scalar_one_or_none()
                if user is None:
                    return None
                user.role_id = role.id
                await session.commit()
        except SQLAlchemyError as e:
            raise self._store_error("Could not change role", e) from e

        logger.info("User %s moved to role '%s'", user.id, role.name)
        return self._summary(user, role.name)

    @staticmethod
    def _summary(user: User, role_name: str) -> UserSummary:
        return UserSummary(
            id=user.id,
            dpi=user.dpi,
            name=user.name,
            email=user.email,
            role_name=role_name,
            is_active=user.is_active,
        )

    @staticmethod
    def _store_error(message: str, error: SQLAlchemyError) -> StoreError:
        metrics.record_store_error("users")
        logger.error("%s: %s", message, error)
        return StoreError(f"{message}: {error}", store="users")
