"""
Level rule repository.

Data access layer for LevelRule model.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.level_rule import LevelRule
from payout_engine.repositories.base import BaseRepository


class LevelRuleRepository(BaseRepository[LevelRule]):
    """Level rule repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize level rule repository."""
        super().__init__(LevelRule, session)

    async def get_ordered(self) -> list[LevelRule]:
        """All rules ordered by level."""
        result = await self.session.execute(
            select(LevelRule).order_by(LevelRule.level)
        )
        return list(result.scalars().all())

    async def replace_all(self, rules: list[dict[str, Any]]) -> list[LevelRule]:
        """
        Replace the whole rule list.

        Args:
            rules: Rule data; ``level`` is assigned 1..N from list order

        Returns:
            Newly stored rules
        """
        for existing in await self.get_ordered():
            await self.session.delete(existing)
        await self.session.flush()

        entities = [
            LevelRule(**{**data, "level": index})
            for index, data in enumerate(rules, start=1)
        ]
        self.session.add_all(entities)
        await self.session.flush()
        return entities
