"""
Rank rule model.

Ordered ladder 1..M of business thresholds and the reward for reaching them.
"""

from decimal import Decimal

from sqlalchemy import DECIMAL, CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base


class RankRule(Base):
    """Thresholds and reward for one rank."""

    __tablename__ = "rank_rules"
    __table_args__ = (
        CheckConstraint('rank >= 1', name='check_rank_rule_positive'),
        CheckConstraint(
            'total_business >= 0 AND power_leg_business >= 0 '
            'AND other_leg_business >= 0 AND reward_income >= 0',
            name='check_rank_rule_non_negative'
        ),
        CheckConstraint(
            'reward_income <= total_business',
            name='check_rank_reward_not_exceeds_business'
        ),
    )

    rank: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    total_business: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False, default=Decimal("0")
    )
    power_leg_business: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False, default=Decimal("0")
    )
    other_leg_business: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False, default=Decimal("0")
    )
    reward_income: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False, default=Decimal("0")
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<RankRule(rank={self.rank}, total={self.total_business}, "
            f"reward={self.reward_income})>"
        )
