"""
Withdrawal model.

Represents a request to pay out withdrawable balance.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base
from payout_engine.models.enums import WithdrawalStatus, WithdrawalType


class Withdrawal(Base):
    """Withdrawal request."""

    __tablename__ = "withdrawals"
    __table_args__ = (
        CheckConstraint(
            'amount > 0', name='check_withdrawal_amount_positive'
        ),
        CheckConstraint(
            'processing_fee >= 0 AND net_amount >= 0',
            name='check_withdrawal_fee_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WithdrawalType.INCOME.value
    )  # principal, income
    amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False
    )
    processing_fee: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False, default=Decimal("0")
    )
    net_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=WithdrawalStatus.PENDING.value,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Withdrawal(id={self.id}, user_id={self.user_id}, "
            f"type={self.type}, amount={self.amount}, status={self.status})>"
        )
