"""Security module for Gated Calc: credentials, permissions and sessions."""

from .credentials import hash_password, is_valid_dpi, verify_password
from .permissions import Capability, PermissionChecker, capability_for
from .session import RoleInfo, SessionContext

__all__ = [
    "hash_password",
    "is_valid_dpi",
    "verify_password",
    "Capability",
    "PermissionChecker",
    "capability_for",
    "RoleInfo",
    "SessionContext",
]
