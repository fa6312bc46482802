"""Gated execution of calculator operations.

Each call walks Start -> PermissionChecked -> QuotaChecked -> Evaluated ->
Recorded, strictly in that order. Any step may short-circuit to Recorded,
but Recorded is always reached: every invocation appends exactly one history
record and increments the quota at most once, and only after a successful
evaluation.

Refusals (permission, quota) and bad input come back as a normal
``OperationOutcome``. Store failures come back as ``STORE_ERROR`` and are
never reported as a policy refusal.
"""

import enum
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from ..evaluation import OperationKind, evaluate
from ..exceptions import ExpressionArithmeticError, ExpressionError, StoreError
from ..models.operation_history import OperationStatus
from ..observability import metrics
from ..observability.logging import log_context
from ..security.permissions import PermissionChecker, capability_for
from ..security.session import SessionContext
from .history import HistoryRecorder, OperationRecord
from .quota import QuotaTracker, utc_today

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    """Why an operation did not produce a result."""

    PERMISSION_DENIED = "permission_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    SYNTAX_ERROR = "syntax_error"
    ARITHMETIC_ERROR = "arithmetic_error"
    STORE_ERROR = "store_error"


@dataclass(frozen=True)
class OperationOutcome:
    """What the caller gets back from ``OperationGateway.execute``.

    ``allowed`` is False when the operation was refused or could not be
    authorized; an evaluation error is an allowed operation that failed.
    """

    allowed: bool
    result: Optional[str] = None
    remaining_quota: Optional[int] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    processed_expression: Optional[str] = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


class OperationGateway:
    """Runs one operation through permission, quota, evaluation and history."""

    def __init__(
        self,
        permissions: PermissionChecker,
        quota: QuotaTracker,
        history: HistoryRecorder,
        today: Callable[[], date] = utc_today,
    ):
        self._permissions = permissions
        self._quota = quota
        self._history = history
        self._today = today

    async def execute(
        self,
        session: SessionContext,
        kind: OperationKind,
        raw_expression: str,
    ) -> OperationOutcome:
        kind = OperationKind(kind)
        raw_expression = raw_expression or ""
        with log_context(
            user_id=str(session.user_id),
            session_id=session.session_id,
            operation_id=uuid.uuid4().hex[:12],
        ):
            return await self._execute(session, kind, raw_expression)

    async def _execute(
        self, session: SessionContext, kind: OperationKind, raw_expression: str
    ) -> OperationOutcome:
        day = self._today()
        capability = capability_for(kind)

        try:
            if not await self._permissions.has_permission(session.role.id, capability):
                return await self._refuse(
                    session, kind, raw_expression,
                    ErrorKind.PERMISSION_DENIED,
                    f"You do not have permission to run {kind.value} operations",
                )

            status = await self._quota.check_quota(session.user_id, session.role, day)
            if not status.allowed:
                return await self._refuse(
                    session, kind, raw_expression,
                    ErrorKind.QUOTA_EXCEEDED,
                    f"Daily operation limit reached ({status.used}/{status.limit})",
                )
        except StoreError as e:
            return await self._store_failure(session, kind, raw_expression, e)

        started = time.perf_counter()
        try:
            evaluation = evaluate(kind, raw_expression)
        except ExpressionError as e:
            duration_ms = _elapsed_ms(started)
            error_kind = (
                ErrorKind.ARITHMETIC_ERROR
                if isinstance(e, ExpressionArithmeticError)
                else ErrorKind.SYNTAX_ERROR
            )
            logger.info("Evaluation failed (%s): %s", error_kind.value, e)
            metrics.record_operation(kind.value, OperationStatus.ERROR.value, duration_ms / 1000)
            await self._record(
                session, kind, raw_expression,
                processed_expression=e.processed_expression,
                status=OperationStatus.ERROR,
                error_message=str(e),
                duration_ms=duration_ms,
            )
            return OperationOutcome(
                allowed=True,
                error_kind=error_kind,
                error_message=str(e),
                processed_expression=e.processed_expression,
                duration_ms=duration_ms,
            )
        duration_ms = _elapsed_ms(started)

        try:
            updated = await self._quota.increment_quota(session.user_id, day)
        except StoreError as e:
            return await self._store_failure(
                session, kind, raw_expression, e,
                processed_expression=evaluation.processed_expression,
                duration_ms=duration_ms,
            )

        if updated is None:
            # Another session used up the last operation after our check
            return await self._refuse(
                session, kind, raw_expression,
                ErrorKind.QUOTA_EXCEEDED,
                "Daily operation limit reached",
                processed_expression=evaluation.processed_expression,
                duration_ms=duration_ms,
            )

        metrics.record_operation(kind.value, OperationStatus.SUCCESS.value, duration_ms / 1000)
        await self._record(
            session, kind, raw_expression,
            processed_expression=evaluation.processed_expression,
            status=OperationStatus.SUCCESS,
            result=evaluation.display,
            duration_ms=duration_ms,
        )
        logger.debug(
            "Evaluated %s expression in %dms (%d/%d used)",
            kind.value, duration_ms, updated.used, updated.limit,
        )
        return OperationOutcome(
            allowed=True,
            result=evaluation.display,
            remaining_quota=updated.remaining,
            processed_expression=evaluation.processed_expression,
            duration_ms=duration_ms,
        )

    async def _refuse(
        self,
        session: SessionContext,
        kind: OperationKind,
        raw_expression: str,
        error_kind: ErrorKind,
        message: str,
        processed_expression: Optional[str] = None,
        duration_ms: int = 0,
    ) -> OperationOutcome:
        logger.info("Operation refused: %s", error_kind.value)
        metrics.record_policy_rejection(kind.value, error_kind.value)
        await self._record(
            session, kind, raw_expression,
            processed_expression=processed_expression,
            status=OperationStatus.ERROR,
            error_message=message,
            duration_ms=duration_ms,
        )
        return OperationOutcome(
            allowed=False,
            error_kind=error_kind,
            error_message=message,
            processed_expression=processed_expression,
            duration_ms=duration_ms,
        )

    async def _store_failure(
        self,
        session: SessionContext,
        kind: OperationKind,
        raw_expression: str,
        error: StoreError,
        processed_expression: Optional[str] = None,
        duration_ms: int = 0,
    ) -> OperationOutcome:
        logger.error("Operation aborted, %s store unavailable: %s", error.store or "backing", error)
        message = "The service is temporarily unavailable, please try again later"
        await self._record(
            session, kind, raw_expression,
            processed_expression=processed_expression,
            status=OperationStatus.ERROR,
            error_message=f"{message} ({error.store or 'store'} error)",
            duration_ms=duration_ms,
        )
        return OperationOutcome(
            allowed=False,
            error_kind=ErrorKind.STORE_ERROR,
            error_message=message,
            processed_expression=processed_expression,
            duration_ms=duration_ms,
        )

    async def _record(
        self,
        session: SessionContext,
        kind: OperationKind,
        raw_expression: str,
        *,
        processed_expression: Optional[str],
        status: OperationStatus,
        result: Optional[str] = None,
        error_message: Optional[str] = None,
        duration_ms: int = 0,
    ) -> None:
        await self._history.record(
            OperationRecord(
                user_id=session.user_id,
                kind=kind,
                original_expression=raw_expression,
                processed_expression=processed_expression,
                result=result,
                status=status,
                error_message=error_message,
                duration_ms=duration_ms,
            )
        )
