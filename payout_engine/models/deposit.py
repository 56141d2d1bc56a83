"""
Deposit model.

Represents a user's deposit request and, once approved, ROI principal.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    DECIMAL,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payout_engine.models.base import Base
from payout_engine.models.enums import DepositStatus


if TYPE_CHECKING:
    from payout_engine.models.user import User


class Deposit(Base):
    """Deposit model - user deposits."""

    __tablename__ = "deposits"
    __table_args__ = (
        CheckConstraint(
            'amount > 0', name='check_deposit_amount_positive'
        ),
        Index('idx_deposit_user_status', 'user_id', 'status'),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # User reference
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Deposit details
    amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False
    )
    method: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )  # usdt_bep20, usdt_trc20, upi, bank

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DepositStatus.PENDING.value,
        index=True
    )  # pending, approved, rejected

    # Accrual start anchor
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="deposits",
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Deposit(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, status={self.status})>"
        )

    @property
    def accrues(self) -> bool:
        """Only approved deposits with an approval anchor earn ROI."""
        return (
            self.status == DepositStatus.APPROVED.value
            and self.approved_at is not None
        )
