"""
Referral edge model.

One immutable edge per referred user, created at registration.
"""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base


class ReferralEdge(Base):
    """Referrer -> referred link. Never retargeted, never deleted."""

    __tablename__ = "referral_edges"
    __table_args__ = (
        CheckConstraint(
            'referrer_id <> referred_id', name='check_referral_not_self'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # No FK cascade: historical edges survive user deletion
    referrer_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    referred_id: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralEdge(referrer_id={self.referrer_id}, "
            f"referred_id={self.referred_id})>"
        )
