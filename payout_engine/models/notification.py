"""
Notification model.

Outbox of messages for users (``user_id`` NULL means broadcast).
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base


class Notification(Base):
    """Message delivered to a user or broadcast."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    # No FK: notifications outlive deleted users
    user_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Notification(id={self.id}, user_id={self.user_id})>"
