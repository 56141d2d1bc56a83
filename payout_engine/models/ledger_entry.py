"""
Ledger entry model.

Append-only record of every posting. Entries are never updated; a reversal
is a new offsetting entry.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    DECIMAL,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payout_engine.models.base import Base
from payout_engine.models.enums import IncomeType, LedgerStatus

if TYPE_CHECKING:
    from payout_engine.models.user import User


class LedgerEntry(Base):
    """One posting event."""

    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index('idx_ledger_user_type_date', 'user_id', 'type', 'for_date'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # roi, level, reward
    amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False
    )

    # Calendar day the income is for, not when it was posted
    for_date: Mapped[date] = mapped_column(
        Date, nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LedgerStatus.CREDITED.value
    )

    # One posting per user per day per income type (or per rank / reversal)
    idempotency_key: Mapped[str] = mapped_column(
        String(100), nullable=False, unique=True
    )
    reverses_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True
    )
    description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="ledger_entries",
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LedgerEntry(id={self.id}, user_id={self.user_id}, "
            f"type={self.type}, amount={self.amount}, for_date={self.for_date})>"
        )

    @property
    def income_type(self) -> IncomeType:
        """Typed view of ``type``."""
        return IncomeType(self.type)

    @property
    def is_reversal(self) -> bool:
        """Entry offsets an earlier entry."""
        return self.status == LedgerStatus.REVERSAL.value
