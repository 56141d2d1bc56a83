"""
User model.

Represents a registered platform member.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    DECIMAL,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payout_engine.models.base import Base

if TYPE_CHECKING:
    from payout_engine.models.deposit import Deposit
    from payout_engine.models.ledger_entry import LedgerEntry


class User(Base):
    """User model - registered members."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'balance >= 0', name='check_user_balance_non_negative'
        ),
        CheckConstraint(
            'self_deposit >= 0',
            name='check_user_self_deposit_non_negative'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    referral_code: Mapped[str | None] = mapped_column(
        String(20), nullable=True, unique=True, index=True
    )

    # Referral (upstream link, root has none)
    referrer_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Balances
    self_deposit: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8),
        default=Decimal("0"),
        nullable=False,
        comment="Cumulative approved principal",
    )
    balance: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8),
        default=Decimal("0"),
        nullable=False,
        comment="Withdrawable credited funds",
    )

    # Status flags
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )
    is_blocked: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )

    # Watermarks: last calendar day posted per recurring income type
    last_roi_date: Mapped[date | None] = mapped_column(
        Date, nullable=True
    )
    last_level_income_date: Mapped[date | None] = mapped_column(
        Date, nullable=True
    )

    # Display caches (advisory, not inputs to money movement)
    roi_income: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), default=Decimal("0"), nullable=False
    )
    level_income: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), default=Decimal("0"), nullable=False
    )
    reward: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), default=Decimal("0"), nullable=False
    )
    rank: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    power_leg_business: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), default=Decimal("0"), nullable=False
    )
    other_leg_business: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), default=Decimal("0"), nullable=False
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
    deposits: Mapped[list["Deposit"]] = relationship(
        "Deposit",
        back_populates="user",
        lazy="raise",
    )
    ledger_entries: Mapped[list["LedgerEntry"]] = relationship(
        "LedgerEntry",
        back_populates="user",
        lazy="raise",
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, email={self.email!r}, "
            f"self_deposit={self.self_deposit}, balance={self.balance}, "
            f"rank={self.rank}, blocked={self.is_blocked})>"
        )

    @property
    def status(self) -> str:
        """Display status derived from activation."""
        return "active" if self.is_active else "inactive"
