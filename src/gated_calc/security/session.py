"""Explicit session context threaded through every gated call."""

import uuid
from dataclasses import dataclass, field
from typing import FrozenSet, Union

from .permissions import Capability


@dataclass(frozen=True)
class RoleInfo:
    """Role snapshot loaded at login; immutable for the rest of the session."""

    id: uuid.UUID
    name: str
    permissions: FrozenSet[str]
    daily_limit: int

    def grants(self, permission: Union[Capability, str]) -> bool:
        """Cached view of the grants at login time, for menu rendering only.

        Gated operations always ask ``PermissionChecker`` instead.
        """
        name = permission.value if isinstance(permission, Capability) else permission
        return name in self.permissions


@dataclass(frozen=True)
class SessionContext:
    """The logged-in user, as seen by the gateway and the console."""

    user_id: uuid.UUID
    dpi: str
    name: str
    email: str
    role: RoleInfo
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
