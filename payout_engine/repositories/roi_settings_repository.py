"""
ROI settings repository.

Data access layer for the ROISettings singleton.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.roi_settings import ROI_SETTINGS_ID, ROISettings
from payout_engine.repositories.base import BaseRepository


class ROISettingsRepository(BaseRepository[ROISettings]):
    """ROI settings repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ROI settings repository."""
        super().__init__(ROISettings, session)

    async def get_current(self, fresh: bool = False) -> ROISettings | None:
        """
        Get the settings row.

        Args:
            fresh: Bypass the identity map and re-read from the database

        Returns:
            Settings or None if never saved
        """
        stmt = select(ROISettings).where(ROISettings.id == ROI_SETTINGS_ID)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_version_and_status(self) -> tuple[int, str] | None:
        """Lightweight read used for in-flight staleness checks."""
        stmt = select(
            ROISettings.settings_version, ROISettings.status
        ).where(ROISettings.id == ROI_SETTINGS_ID)
        result = await self.session.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return row[0], row[1]
