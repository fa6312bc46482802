"""Operation history model."""

import enum
import uuid
from typing import Optional

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from ..evaluation.grammar import OperationKind
from .base import Base


class OperationStatus(str, enum.Enum):
    """Outcome of a gated operation."""

    SUCCESS = "success"
    ERROR = "error"


class OperationHistory(Base):
    """Append-only record of one gated operation.

    Written for every attempt, successful or not: refusals and evaluation
    errors are history too. Rows are never updated or deleted.
    """

    __tablename__ = "operation_history"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )

    kind: Mapped[OperationKind] = mapped_column(
        Enum(
            OperationKind,
            name="operationkind",
            create_constraint=False,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )

    original_expression: Mapped[str] = mapped_column(Text, nullable=False)
    processed_expression: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[OperationStatus] = mapped_column(
        Enum(
            OperationStatus,
            name="operationstatus",
            create_constraint=False,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_operation_history_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<OperationHistory(kind='{self.kind.value}', status='{self.status.value}', "
            f"expression='{self.original_expression}')>"
        )
