"""
Level income rule model.

Admin-configured, dense list indexed 1..N (N <= 30).
"""

from decimal import Decimal

from sqlalchemy import DECIMAL, Boolean, CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base


class LevelRule(Base):
    """Commission percent and eligibility thresholds for one referral depth."""

    __tablename__ = "level_rules"
    __table_args__ = (
        CheckConstraint(
            'level >= 1 AND level <= 30', name='check_level_rule_range'
        ),
        CheckConstraint(
            'income_percent >= 0 AND income_percent <= 100',
            name='check_level_rule_percent_range'
        ),
        CheckConstraint(
            'self_investment_condition >= 0 '
            'AND total_team_business_condition >= 0 '
            'AND total_team_size_condition >= 0',
            name='check_level_rule_conditions_non_negative'
        ),
    )

    level: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    income_percent: Mapped[Decimal] = mapped_column(
        DECIMAL(5, 2), nullable=False, default=Decimal("0")
    )
    self_investment_condition: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False, default=Decimal("0")
    )
    total_team_business_condition: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False, default=Decimal("0")
    )
    total_team_size_condition: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    blocked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LevelRule(level={self.level}, percent={self.income_percent}, "
            f"blocked={self.blocked})>"
        )
