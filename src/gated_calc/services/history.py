"""Best-effort, append-only operation history.

``HistoryRecorder.record()`` never raises: if the write fails the error is
logged and counted, and the operation that triggered it is unaffected.
Listing is a normal read and surfaces failures as ``StoreError``.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database.connection import get_session_factory
from ..evaluation.grammar import OperationKind
from ..exceptions import StoreError
from ..models.operation_history import OperationHistory, OperationStatus
from ..models.user import User
from ..observability import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationRecord:
    """One gated operation, ready to be appended to history."""

    user_id: uuid.UUID
    kind: OperationKind
    original_expression: str
    processed_expression: Optional[str]
    result: Optional[str]
    status: OperationStatus
    error_message: Optional[str] = None
    duration_ms: int = 0


@dataclass(frozen=True)
class HistoryEntry:
    """A history row as shown to users."""

    kind: OperationKind
    original_expression: str
    result: Optional[str]
    status: OperationStatus
    created_at: datetime
    error_message: Optional[str] = None
    user_name: Optional[str] = None


class HistoryRecorder:
    """Appends operation records and lists them back."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    async def record(self, record: OperationRecord) -> bool:
        """Append *record*. Returns False if it could not be persisted."""
        try:
            async with self._session_factory() as session:
                session.add(
                    OperationHistory(
                        user_id=record.user_id,
                        kind=record.kind,
                        original_expression=record.original_expression,
                        processed_expression=record.processed_expression,
                        result=record.result,
                        status=record.status,
                        error_message=record.error_message,
                        duration_ms=record.duration_ms,
                    )
                )
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to persist operation history kind=%s status=%s",
                record.kind.value, record.status.value,
            )
            metrics.record_history_write_failure()
            return False
        return True

    async def list_for_user(self, user_id: uuid.UUID, limit: int = 10) -> List[HistoryEntry]:
        """Most recent operations of one user, newest first."""
        query = (
            select(OperationHistory)
            .where(OperationHistory.user_id == user_id)
            .order_by(OperationHistory.created_at.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).scalars().all()
        except SQLAlchemyError as e:
            metrics.record_store_error("history")
            raise StoreError(f"Could not load history: {e}", store="history") from e
        return [self._entry(row) for row in rows]

    async def list_all(self, limit: int = 20) -> List[HistoryEntry]:
        """Most recent operations of every user, newest first."""
        query = (
            select(OperationHistory, User.name)
            .join(User, User.id == OperationHistory.user_id)
            .order_by(OperationHistory.created_at.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).all()
        except SQLAlchemyError as e:
            metrics.record_store_error("history")
            raise StoreError(f"Could not load history: {e}", store="history") from e
        return [self._entry(row, user_name=name) for row, name in rows]

    @staticmethod
    def _entry(row: OperationHistory, user_name: Optional[str] = None) -> HistoryEntry:
        return HistoryEntry(
            kind=row.kind,
            original_expression=row.original_expression,
            result=row.result,
            status=row.status,
            created_at=row.created_at,
            error_message=row.error_message,
            user_name=user_name,
        )
