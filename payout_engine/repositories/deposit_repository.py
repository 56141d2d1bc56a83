"""
Deposit repository.

Data access layer for Deposit model.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.deposit import Deposit
from payout_engine.models.enums import DepositStatus
from payout_engine.repositories.base import BaseRepository


class DepositRepository(BaseRepository[Deposit]):
    """Deposit repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize deposit repository."""
        super().__init__(Deposit, session)

    async def get_approved_by_user(self, user_id: int) -> list[Deposit]:
        """
        Get approved deposits of a user (the ROI principal).

        Args:
            user_id: User ID

        Returns:
            Approved deposits with an approval timestamp, oldest first
        """
        stmt = (
            select(Deposit)
            .where(
                Deposit.user_id == user_id,
                Deposit.status == DepositStatus.APPROVED.value,
                Deposit.approved_at.is_not(None),
            )
            .order_by(Deposit.approved_at, Deposit.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_pending(self, limit: int | None = None) -> list[Deposit]:
        """Get deposits awaiting review, oldest first."""
        return await self.find_all(
            limit=limit, status=DepositStatus.PENDING.value
        )

    async def count_users_with_deposits(self) -> int:
        """Number of distinct users holding an approved deposit."""
        stmt = select(func.count(func.distinct(Deposit.user_id))).where(
            Deposit.status == DepositStatus.APPROVED.value
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def total_approved(self) -> Decimal:
        """Sum of all approved principal."""
        stmt = select(func.coalesce(func.sum(Deposit.amount), 0)).where(
            Deposit.status == DepositStatus.APPROVED.value
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))
