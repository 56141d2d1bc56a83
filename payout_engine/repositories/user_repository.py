"""
User repository.

Data access layer for User model, including the conditional balance
updates used by the payout poster.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.user import User
from payout_engine.repositories.base import BaseRepository


# Watermark column per recurring income type
WATERMARK_COLUMNS = {
    "roi": User.last_roi_date,
    "level": User.last_level_income_date,
}


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> User | None:
        """
        Get user by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            User or None
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_referral_code(
        self, referral_code: str
    ) -> User | None:
        """
        Get user by referral code.

        Args:
            referral_code: Referral code

        Returns:
            User or None
        """
        return await self.get_by(referral_code=referral_code)

    async def get_many(self, user_ids: Sequence[int]) -> dict[int, User]:
        """
        Load several users in one query.

        Args:
            user_ids: User IDs

        Returns:
            Mapping of id to user; unknown ids are absent
        """
        if not user_ids:
            return {}
        stmt = select(User).where(User.id.in_(list(user_ids)))
        result = await self.session.execute(stmt)
        return {user.id: user for user in result.scalars().all()}

    async def get_payout_candidate_ids(self) -> list[int]:
        """IDs of active, non-blocked users in id order."""
        stmt = (
            select(User.id)
            .where(User.is_active.is_(True), User.is_blocked.is_(False))
            .order_by(User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_unblocked_ids(self) -> list[int]:
        """IDs of all non-blocked users in id order."""
        stmt = (
            select(User.id)
            .where(User.is_blocked.is_(False))
            .order_by(User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_all_ids(self) -> list[int]:
        """IDs of every user in id order."""
        result = await self.session.execute(select(User.id).order_by(User.id))
        return list(result.scalars().all())

    async def credit_if_not_posted(
        self,
        user_id: int,
        income_type: str,
        amount: Decimal,
        for_date: date,
    ) -> bool:
        """
        Credit ``amount`` and advance the income watermark in one statement.

        The WHERE clause only matches when the watermark is behind
        ``for_date`` and the user is not blocked, so two concurrent
        callers can never both succeed for the same day.

        Args:
            user_id: User ID
            income_type: "roi" or "level"
            amount: Amount to add to balance (may be zero)
            for_date: Calendar day being posted

        Returns:
            True if the row was updated, False if already posted or blocked
        """
        watermark = WATERMARK_COLUMNS[income_type]
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                or_(watermark.is_(None), watermark < for_date),
                User.is_blocked.is_(False),
            )
            .values(
                {
                    User.balance: User.balance + amount,
                    watermark: for_date,
                }
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def credit_balance(self, user_id: int, amount: Decimal) -> bool:
        """
        Atomically add to balance.

        Args:
            user_id: User ID
            amount: Amount to add

        Returns:
            True if the user exists
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(balance=User.balance + amount)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def debit_balance(self, user_id: int, amount: Decimal) -> bool:
        """
        Atomically subtract from balance if funds suffice.

        Args:
            user_id: User ID
            amount: Amount to subtract

        Returns:
            False when the balance is insufficient or the user is missing
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.balance >= amount)
            .values(balance=User.balance - amount)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def update_income_caches(
        self,
        user_id: int,
        roi_income: Decimal,
        level_income: Decimal,
    ) -> None:
        """Write advisory display totals."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(roi_income=roi_income, level_income=level_income)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)

    async def count_users(
        self,
        is_active: bool | None = None,
        is_blocked: bool | None = None,
    ) -> int:
        """Count users, optionally filtered by status flags."""
        filters: dict[str, bool] = {}
        if is_active is not None:
            filters["is_active"] = is_active
        if is_blocked is not None:
            filters["is_blocked"] = is_blocked
        return await self.count(**filters)

    async def count_with_roi(self) -> int:
        """Users whose cached lifetime ROI is positive."""
        stmt = select(func.count()).select_from(User).where(User.roi_income > 0)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
