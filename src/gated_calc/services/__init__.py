"""Gated operation services: quota, history, users and the gateway."""

from .gateway import ErrorKind, OperationGateway, OperationOutcome
from .history import HistoryEntry, HistoryRecorder, OperationRecord
from .quota import QuotaStatus, QuotaTracker, utc_today
from .users import UserDirectory, UserSummary

__all__ = [
    "ErrorKind",
    "OperationGateway",
    "OperationOutcome",
    "HistoryEntry",
    "HistoryRecorder",
    "OperationRecord",
    "QuotaStatus",
    "QuotaTracker",
    "utc_today",
    "UserDirectory",
    "UserSummary",
]
