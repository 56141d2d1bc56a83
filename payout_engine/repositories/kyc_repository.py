"""
KYC repository.

Data access layer for KycRecord and KycHistory.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.kyc import KycHistory, KycRecord
from payout_engine.repositories.base import BaseRepository


class KycRepository(BaseRepository[KycRecord]):
    """KYC repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize KYC repository."""
        super().__init__(KycRecord, session)

    async def add_history(
        self,
        user_id: int,
        status: str,
        remarks: str | None = None,
        updated_by: str = "admin",
    ) -> KycHistory:
        """
        Append a review event.

        Args:
            user_id: User ID
            status: Status after the event
            remarks: Reviewer remarks
            updated_by: Actor label

        Returns:
            Created history row
        """
        entry = KycHistory(
            user_id=user_id,
            status=status,
            remarks=remarks,
            updated_by=updated_by,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_history(self, user_id: int) -> list[KycHistory]:
        """Review events of a user, oldest first."""
        stmt = (
            select(KycHistory)
            .where(KycHistory.user_id == user_id)
            .order_by(KycHistory.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
