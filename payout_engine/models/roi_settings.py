"""
ROI settings model.

Singleton row (id=1) holding the global ROI rate, cap and scheduler metadata.
"""

from datetime import UTC, datetime
from decimal import ROUND_FLOOR, Decimal

from sqlalchemy import DECIMAL, BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base
from payout_engine.models.enums import ROIStatus

ROI_SETTINGS_ID = 1


class ROISettings(Base):
    """Global ROI configuration."""

    __tablename__ = "roi_settings"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, default=ROI_SETTINGS_ID
    )

    # Plan as entered by the admin
    plan_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="daily"
    )  # daily, weekly, monthly
    percentage: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 8), nullable=False, default=Decimal("1")
    )
    duration: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30
    )

    # Derived rates (fractions, 0.01 = 1%)
    daily_roi: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 10), nullable=False
    )
    max_roi: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 10), nullable=False
    )
    stored_max_days: Mapped[int | None] = mapped_column(
        "max_days", Integer, nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ROIStatus.ACTIVE.value
    )

    # Millisecond timestamp, strictly increasing on every save
    settings_version: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    # Scheduler bookkeeping
    last_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    total_runs: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    last_processed_users: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )
    scheduler_heartbeat: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ROISettings(daily_roi={self.daily_roi}, max_roi={self.max_roi}, "
            f"status={self.status}, version={self.settings_version})>"
        )

    @property
    def is_active(self) -> bool:
        """ROI accrual switched on."""
        return self.status == ROIStatus.ACTIVE.value

    @property
    def max_days(self) -> int:
        """
        Days after which a deposit stops accruing: floor(max_roi / daily_roi).

        A stored day count is capped at that bound.
        """
        if not self.daily_roi or self.daily_roi <= 0:
            return 0
        ratio = Decimal(self.max_roi) / Decimal(self.daily_roi)
        # Absorb representation error before flooring (0.30 / 0.01 -> 30)
        ratio = ratio.quantize(Decimal("0.000001"))
        derived = int(ratio.to_integral_value(rounding=ROUND_FLOOR))
        if self.stored_max_days is not None:
            return min(self.stored_max_days, derived)
        return derived
