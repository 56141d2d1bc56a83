"""
Notification repository.

Data access layer for the Notification outbox.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.notification import Notification
from payout_engine.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Notification repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize notification repository."""
        super().__init__(Notification, session)

    async def get_for_user(self, user_id: int) -> list[Notification]:
        """Messages addressed to the user plus broadcasts, oldest first."""
        stmt = (
            select(Notification)
            .where(
                or_(
                    Notification.user_id == user_id,
                    Notification.user_id.is_(None),
                )
            )
            .order_by(Notification.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
