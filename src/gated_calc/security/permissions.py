"""RBAC permission model for Gated Calc.

Maps each seeded ``RoleName`` to a ``Capability`` set and a daily operation
limit. These tables only seed the database: at run time ``PermissionChecker``
answers from the ``role_permissions`` relation, so an administrator can change
grants without a code change.
"""

import enum
import logging
import uuid
from typing import Dict, FrozenSet, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database.connection import get_session_factory
from ..evaluation.grammar import OperationKind
from ..exceptions import StoreError
from ..models.role import Permission, RoleName, RolePermission
from ..observability import metrics

logger = logging.getLogger(__name__)


class Capability(str, enum.Enum):
    """Named capabilities that roles may be granted."""

    CALCULATE_MATH = "calculate_math"
    CALCULATE_BOOLEAN = "calculate_boolean"
    VIEW_OWN_HISTORY = "view_own_history"
    VIEW_ALL_HISTORY = "view_all_history"
    MANAGE_USERS = "manage_users"


# ---------------------------------------------------------------------------
# Seed data: Role → Capability mapping and daily limits
# ---------------------------------------------------------------------------

_ALL_CAPABILITIES: FrozenSet[Capability] = frozenset(Capability)

ROLE_PERMISSIONS: Dict[RoleName, FrozenSet[Capability]] = {
    RoleName.ADMIN: _ALL_CAPABILITIES,

    RoleName.PREMIUM: frozenset({
        Capability.CALCULATE_MATH,
        Capability.CALCULATE_BOOLEAN,
        Capability.VIEW_OWN_HISTORY,
    }),

    RoleName.BASIC: frozenset({
        Capability.CALCULATE_MATH,
        Capability.VIEW_OWN_HISTORY,
    }),
}

ROLE_DAILY_LIMITS: Dict[RoleName, int] = {
    RoleName.BASIC: 10,
    RoleName.PREMIUM: 100,
    RoleName.ADMIN: 1000,
}

ROLE_DESCRIPTIONS: Dict[RoleName, str] = {
    RoleName.BASIC: "Basic user",
    RoleName.PREMIUM: "Premium user",
    RoleName.ADMIN: "Administrator",
}

KIND_CAPABILITIES: Dict[OperationKind, Capability] = {
    OperationKind.MATH: Capability.CALCULATE_MATH,
    OperationKind.BOOLEAN: Capability.CALCULATE_BOOLEAN,
}


def capability_for(kind: OperationKind) -> Capability:
    """Return the capability required to run an operation of *kind*."""
    return KIND_CAPABILITIES[OperationKind(kind)]


def _permission_name(permission: Union[Capability, str]) -> str:
    if isinstance(permission, Capability):
        return permission.value
    return str(permission)


class PermissionChecker:
    """Answers whether a role may invoke a named capability.

    A missing grant is a normal ``False``. A database failure raises
    ``StoreError`` so callers can tell "check failed" apart from "denied".
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    async def has_permission(
        self, role_id: uuid.UUID, permission: Union[Capability, str]
    ) -> bool:
        name = _permission_name(permission)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Permission.id)
                    .join(RolePermission, RolePermission.permission_id == Permission.id)
                    .where(
                        RolePermission.role_id == role_id,
                        Permission.name == name,
                    )
                    .limit(1)
                )
                granted = result.first() is not None
        except SQLAlchemyError as e:
            metrics.record_store_error("permissions")
            logger.error("Permission lookup failed for role %s (%s): %s", role_id, name, e)
            raise StoreError(f"Permission check failed: {e}", store="permissions") from e

        if not granted:
            logger.info("Role %s lacks permission %s", role_id, name)
        return granted
