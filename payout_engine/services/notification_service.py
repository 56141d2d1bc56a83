"""
Notification service.

Fire-and-forget sink: writes an outbox row in its own transaction after
the caller has committed. Failures are logged, never raised.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.notification import Notification
from payout_engine.repositories.notification_repository import (
    NotificationRepository,
)


class NotificationService:
    """Notification outbox writer."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize notification service."""
        self.session = session
        self.repo = NotificationRepository(session)

    async def notify(self, user_id: int | None, message: str) -> bool:
        """
        Send a notification.

        Must be called after the financial transaction has committed.

        Args:
            user_id: Recipient, or None for a broadcast
            message: Plain message text

        Returns:
            True if the message was stored
        """
        try:
            await self.repo.create(user_id=user_id, message=message)
            await self.session.commit()
            return True
        except Exception as e:
            logger.warning(
                f"Notification not stored: {e}",
                extra={"user_id": user_id},
            )
            try:
                await self.session.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback after notification failure failed: {rollback_error}")
            return False

    async def stage(self, user_id: int | None, message: str) -> Notification:
        """
        Add a notification to the caller's open transaction.

        Used when the message must commit atomically with other writes.
        """
        notification = Notification(user_id=user_id, message=message)
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def broadcast(self, message: str) -> bool:
        """Send a notification to every user."""
        return await self.notify(None, message)
