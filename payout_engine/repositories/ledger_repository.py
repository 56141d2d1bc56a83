"""
Ledger repository.

Append-only access to LedgerEntry.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.enums import LedgerStatus
from payout_engine.models.ledger_entry import LedgerEntry
from payout_engine.repositories.base import BaseRepository


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Ledger repository. Entries are only ever inserted."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger repository."""
        super().__init__(LedgerEntry, session)

    async def get_by_key(self, idempotency_key: str) -> LedgerEntry | None:
        """
        Get entry by idempotency key.

        Args:
            idempotency_key: Unique posting key

        Returns:
            Entry or None
        """
        return await self.get_by(idempotency_key=idempotency_key)

    async def get_for_user(
        self,
        user_id: int,
        income_type: str | None = None,
    ) -> list[LedgerEntry]:
        """
        Entries of a user, oldest first.

        Args:
            user_id: User ID
            income_type: Optional filter (roi, level, reward)

        Returns:
            Ledger entries
        """
        stmt = select(LedgerEntry).where(LedgerEntry.user_id == user_id)
        if income_type is not None:
            stmt = stmt.where(LedgerEntry.type == income_type)
        stmt = stmt.order_by(LedgerEntry.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_reversal_of(self, entry_id: int) -> LedgerEntry | None:
        """Reversal entry offsetting ``entry_id``, if any."""
        return await self.get_by(reverses_id=entry_id)

    async def net_total(
        self,
        user_id: int | None = None,
        income_type: str | None = None,
        for_date: date | None = None,
    ) -> Decimal:
        """
        Net posted amount (credits plus negative reversals).

        Args:
            user_id: Optional user filter
            income_type: Optional type filter
            for_date: Optional calendar-day filter

        Returns:
            Sum of amounts
        """
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0))
        if user_id is not None:
            stmt = stmt.where(LedgerEntry.user_id == user_id)
        if income_type is not None:
            stmt = stmt.where(LedgerEntry.type == income_type)
        if for_date is not None:
            stmt = stmt.where(LedgerEntry.for_date == for_date)
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    async def count_credited(self, income_type: str | None = None) -> int:
        """Number of credited (non-reversal) entries."""
        filters = {"status": LedgerStatus.CREDITED.value}
        if income_type is not None:
            filters["type"] = income_type
        return await self.count(**filters)

    async def net_total_created_between(
        self, start: datetime, end: datetime
    ) -> Decimal:
        """Net amount of entries created in ``[start, end)``."""
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.created_at >= start,
            LedgerEntry.created_at < end,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))
