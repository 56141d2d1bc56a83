"""
Withdrawal repository.

Data access layer for Withdrawal model.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.enums import WithdrawalStatus
from payout_engine.models.withdrawal import Withdrawal
from payout_engine.repositories.base import BaseRepository


class WithdrawalRepository(BaseRepository[Withdrawal]):
    """Withdrawal repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize withdrawal repository."""
        super().__init__(Withdrawal, session)

    async def get_pending(self) -> list[Withdrawal]:
        """Withdrawals awaiting review, oldest first."""
        return await self.find_by(status=WithdrawalStatus.PENDING.value)

    async def pending_total(self, user_id: int) -> Decimal:
        """Sum of a user's pending withdrawal amounts."""
        stmt = select(func.coalesce(func.sum(Withdrawal.amount), 0)).where(
            Withdrawal.user_id == user_id,
            Withdrawal.status == WithdrawalStatus.PENDING.value,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))
