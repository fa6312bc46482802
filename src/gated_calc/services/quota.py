"""Per-user, per-day operation quota.

The check creates the day's row lazily with the role's limit frozen into it.
The increment is one conditional ``UPDATE ... WHERE performed <
operation_limit``: the database applies the guard and the write atomically,
so concurrent sessions sharing the store can never push ``performed`` past
the limit. A rejected increment updates no row and is reported as ``None``.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database.connection import get_session_factory
from ..exceptions import StoreError
from ..models.daily_usage import DailyUsage
from ..observability import metrics
from ..security.session import RoleInfo

logger = logging.getLogger(__name__)


def utc_today() -> date:
    """Current calendar day (UTC)."""
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True, slots=True)
class QuotaStatus:
    """Usage of one user on one day."""

    allowed: bool
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    @classmethod
    def of(cls, used: int, limit: int) -> "QuotaStatus":
        return cls(allowed=used < limit, used=used, limit=limit)


class QuotaTracker:
    """Tracks and enforces the daily operation count against the role limit."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    @staticmethod
    async def _read(session: AsyncSession, user_id: uuid.UUID, day: date):
        result = await session.execute(
            select(DailyUsage.performed, DailyUsage.operation_limit).where(
                DailyUsage.user_id == user_id,
                DailyUsage.day == day,
            )
        )
        return result.first()

    async def check_quota(
        self, user_id: uuid.UUID, role: RoleInfo, day: Optional[date] = None
    ) -> QuotaStatus:
        """Return today's usage, creating the day's record on first check."""
        day = day or utc_today()
        try:
            async with self._session_factory() as session:
                row = await self._read(session, user_id, day)
                if row is not None:
                    return QuotaStatus.of(row.performed, row.operation_limit)

                session.add(
                    DailyUsage(
                        user_id=user_id,
                        day=day,
                        performed=0,
                        operation_limit=role.daily_limit,
                    )
                )
                try:
                    await session.commit()
                except IntegrityError:
                    # Another session created the row first
                    await session.rollback()
                    row = await self._read(session, user_id, day)
                    if row is None:
                        raise
                    return QuotaStatus.of(row.performed, row.operation_limit)

                logger.debug(
                    "Opened daily usage for user %s on %s (limit=%d)",
                    user_id, day, role.daily_limit,
                )
                return QuotaStatus.of(0, role.daily_limit)
        except SQLAlchemyError as e:
            metrics.record_store_error("quota")
            logger.error("Quota check failed for user %s on %s: %s", user_id, day, e)
            raise StoreError(f"Quota check failed: {e}", store="quota") from e

    async def increment_quota(
        self, user_id: uuid.UUID, day: Optional[date] = None
    ) -> Optional[QuotaStatus]:
        """Count one operation. Returns the new usage, or ``None`` if the limit
        was already reached (or the day has no record yet)."""
        day = day or utc_today()
        try:
            async with self._session_factory() as session:
                update_result = await session.execute(
                    update(DailyUsage)
                    .where(
                        DailyUsage.user_id == user_id,
                        DailyUsage.day == day,
                        DailyUsage.performed < DailyUsage.operation_limit,
                    )
                    .values(performed=DailyUsage.performed + 1)
                    .execution_options(synchronize_session=False)
                )
                if (update_result.rowcount or 0) == 0:
                    await session.rollback()
                    logger.info("Quota increment refused for user %s on %s", user_id, day)
                    return None

                row = await self._read(session, user_id, day)
                await session.commit()
        except SQLAlchemyError as e:
            metrics.record_store_error("quota")
            logger.error("Quota increment failed for user %s on %s: %s", user_id, day, e)
            raise StoreError(f"Quota update failed: {e}", store="quota") from e

        return QuotaStatus.of(row.performed, row.operation_limit)

    async def get_usage(self, user_id: uuid.UUID, day: Optional[date] = None) -> Optional[QuotaStatus]:
        """Read a day's usage without creating it."""
        day = day or utc_today()
        try:
            async with self._session_factory() as session:
                row = await self._read(session, user_id, day)
        except SQLAlchemyError as e:
            metrics.record_store_error("quota")
            raise StoreError(f"Quota lookup failed: {e}", store="quota") from e
        if row is None:
            return None
        return QuotaStatus.of(row.performed, row.operation_limit)
