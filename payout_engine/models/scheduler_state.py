"""
Scheduler state model.

Singleton row (id=1) that lets a recovering process decide whether to
resume, skip or restart the daily payout schedule.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base
from payout_engine.models.enums import SchedulerStatus

SCHEDULER_STATE_ID = 1


class SchedulerState(Base):
    """Persisted daily-payout scheduler state."""

    __tablename__ = "scheduler_state"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, default=SCHEDULER_STATE_ID
    )

    is_running: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SchedulerStatus.IDLE.value
    )  # idle, scheduled, running, retry_backoff

    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_run: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    next_run: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Copy of ROISettings.settings_version when the schedule was armed
    settings_version: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True
    )

    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True
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
            f"<SchedulerState(status={self.status}, is_running={self.is_running}, "
            f"next_run={self.next_run}, version={self.settings_version})>"
        )
