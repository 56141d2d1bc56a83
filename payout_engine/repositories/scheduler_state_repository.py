"""
Scheduler state repository.

Data access layer for the SchedulerState singleton.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.enums import SchedulerStatus
from payout_engine.models.scheduler_state import (
    SCHEDULER_STATE_ID,
    SchedulerState,
)
from payout_engine.repositories.base import BaseRepository


class SchedulerStateRepository(BaseRepository[SchedulerState]):
    """Scheduler state repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize scheduler state repository."""
        super().__init__(SchedulerState, session)

    async def get_or_create(self) -> SchedulerState:
        """
        Get the state row, creating an idle one on first use.

        Returns:
            Scheduler state
        """
        state = await self.get_by_id(SCHEDULER_STATE_ID, for_update=True)
        if state is None:
            state = await self.create(
                id=SCHEDULER_STATE_ID,
                is_running=False,
                status=SchedulerStatus.IDLE.value,
            )
        return state
