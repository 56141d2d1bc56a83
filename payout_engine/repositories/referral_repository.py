"""
Referral repository.

Data access layer for ReferralEdge model.
"""

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.referral import ReferralEdge
from payout_engine.repositories.base import BaseRepository


class ReferralRepository(BaseRepository[ReferralEdge]):
    """Referral edge repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral repository."""
        super().__init__(ReferralEdge, session)

    async def get_by_referred(self, referred_id: int) -> ReferralEdge | None:
        """
        Get the edge pointing at a referred user.

        Args:
            referred_id: Referred user ID

        Returns:
            Edge or None for a root user
        """
        return await self.get_by(referred_id=referred_id)

    async def get_children(
        self, referrer_ids: Sequence[int]
    ) -> list[tuple[int, int]]:
        """
        Direct referrals of a whole BFS frontier in one query.

        Args:
            referrer_ids: Frontier user IDs

        Returns:
            ``(referrer_id, referred_id)`` pairs in edge creation order
        """
        if not referrer_ids:
            return []
        stmt = (
            select(ReferralEdge.referrer_id, ReferralEdge.referred_id)
            .where(ReferralEdge.referrer_id.in_(list(referrer_ids)))
            .order_by(ReferralEdge.id)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def get_direct_referral_ids(self, referrer_id: int) -> list[int]:
        """Referred user IDs of a single referrer."""
        return [child for _, child in await self.get_children([referrer_id])]

    async def get_upline_ids(
        self, user_id: int, max_depth: int
    ) -> list[int]:
        """
        Walk referrer links upward.

        Args:
            user_id: Starting user
            max_depth: Maximum number of hops

        Returns:
            Referrer IDs, nearest first; stops early on a repeated id
        """
        upline: list[int] = []
        seen = {user_id}
        current = user_id
        for _ in range(max_depth):
            edge = await self.get_by_referred(current)
            if edge is None or edge.referrer_id in seen:
                break
            upline.append(edge.referrer_id)
            seen.add(edge.referrer_id)
            current = edge.referrer_id
        return upline
