"""Database models for Gated Calc."""

from .base import Base
from .role import Role, Permission, RolePermission, RoleName
from .user import User
from .daily_usage import DailyUsage
from .operation_history import OperationHistory, OperationStatus

__all__ = [
    "Base",
    "Role",
    "Permission",
    "RolePermission",
    "RoleName",
    "User",
    "DailyUsage",
    "OperationHistory",
    "OperationStatus",
]
