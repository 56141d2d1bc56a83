"""
Rank rule repository.

Data access layer for RankRule model.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.rank_rule import RankRule
from payout_engine.repositories.base import BaseRepository


class RankRuleRepository(BaseRepository[RankRule]):
    """Rank rule repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rank rule repository."""
        super().__init__(RankRule, session)

    async def get_ladder(self) -> list[RankRule]:
        """Ladder ordered by rank ascending."""
        result = await self.session.execute(
            select(RankRule).order_by(RankRule.rank)
        )
        return list(result.scalars().all())

    async def replace_all(self, rules: list[dict[str, Any]]) -> list[RankRule]:
        """
        Replace the whole ladder.

        Args:
            rules: Rule data; ``rank`` is assigned 1..M from list order

        Returns:
            Newly stored rules
        """
        for existing in await self.get_ladder():
            await self.session.delete(existing)
        await self.session.flush()

        entities = [
            RankRule(**{**data, "rank": index})
            for index, data in enumerate(rules, start=1)
        ]
        self.session.add_all(entities)
        await self.session.flush()
        return entities
