"""Per-user daily operation counter model."""

import uuid
from datetime import date

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class DailyUsage(Base):
    """Operations performed by one user on one calendar day.

    ``operation_limit`` is copied from the user's role when the row is created
    and never changes afterwards, so a role change does not affect a day that
    is already in progress. Rows are never deleted; a new day gets a new row.
    """

    __tablename__ = "daily_usage"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_daily_usage_user_day"),
        CheckConstraint(
            "performed >= 0 AND performed <= operation_limit",
            name="ck_daily_usage_within_limit",
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    performed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    operation_limit: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<DailyUsage(user={self.user_id}, day={self.day}, "
            f"performed={self.performed}/{self.operation_limit})>"
        )
