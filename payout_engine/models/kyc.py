"""
KYC models.

Current KYC record per user plus an append-only review history.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base
from payout_engine.models.enums import KycStatus


class KycRecord(Base):
    """Latest KYC submission and review status for a user."""

    __tablename__ = "kyc_records"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=KycStatus.PENDING.value, index=True
    )
    full_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    document_number: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    remarks: Mapped[str | None] = mapped_column(
        Text, nullable=True
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
        return f"<KycRecord(user_id={self.user_id}, status={self.status})>"


class KycHistory(Base):
    """One KYC review event."""

    __tablename__ = "kyc_history"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_by: Mapped[str] = mapped_column(
        String(50), nullable=False, default="admin"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
