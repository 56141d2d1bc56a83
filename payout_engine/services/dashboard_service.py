"""
Dashboard service.

Read-only aggregates for the admin console.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config.settings import settings
from payout_engine.models.enums import (
    DepositStatus,
    IncomeType,
    WithdrawalStatus,
)
from payout_engine.repositories.deposit_repository import DepositRepository
from payout_engine.repositories.ledger_repository import LedgerRepository
from payout_engine.repositories.roi_settings_repository import (
    ROISettingsRepository,
)
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.repositories.withdrawal_repository import (
    WithdrawalRepository,
)
from payout_engine.utils.datetime_utils import local_date, start_of_day, utc_now


@dataclass(frozen=True)
class DashboardStats:
    """Headline numbers."""

    total_members: int
    active_members: int
    blocked_members: int
    today_income: Decimal
    pending_withdrawals: int
    pending_deposits: int


@dataclass(frozen=True)
class ROIStatusReport:
    """ROI configuration and payout totals."""

    configured: bool
    status: str | None
    plan_type: str | None
    daily_roi: Decimal
    max_roi: Decimal
    max_days: int
    settings_version: int | None
    total_runs: int
    last_run_at: str | None
    last_error: str | None
    users_with_deposits: int
    users_with_roi: int
    total_deposits: Decimal
    total_roi_paid: Decimal
    total_level_paid: Decimal
    total_rewards_paid: Decimal


class DashboardService:
    """Admin dashboard aggregates."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize dashboard service."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.deposit_repo = DepositRepository(session)
        self.withdrawal_repo = WithdrawalRepository(session)
        self.ledger_repo = LedgerRepository(session)
        self.roi_repo = ROISettingsRepository(session)

    async def stats(self, today: date | None = None) -> DashboardStats:
        """
        Member counts, income posted today and pending approvals.

        Args:
            today: Calendar day in the payout timezone (defaults to today)
        """
        tz = settings.tz
        today = today or local_date(utc_now(), tz)
        day_start = start_of_day(today, tz)

        return DashboardStats(
            total_members=await self.user_repo.count_users(),
            active_members=await self.user_repo.count_users(is_active=True),
            blocked_members=await self.user_repo.count_users(is_blocked=True),
            today_income=await self.ledger_repo.net_total_created_between(
                day_start, day_start + timedelta(days=1)
            ),
            pending_withdrawals=await self.withdrawal_repo.count(
                status=WithdrawalStatus.PENDING.value
            ),
            pending_deposits=await self.deposit_repo.count(
                status=DepositStatus.PENDING.value
            ),
        )

    async def roi_status(self) -> ROIStatusReport:
        """ROI settings summary with payout totals."""
        roi_settings = await self.roi_repo.get_current()

        return ROIStatusReport(
            configured=roi_settings is not None,
            status=roi_settings.status if roi_settings else None,
            plan_type=roi_settings.plan_type if roi_settings else None,
            daily_roi=Decimal(roi_settings.daily_roi) if roi_settings else Decimal("0"),
            max_roi=Decimal(roi_settings.max_roi) if roi_settings else Decimal("0"),
            max_days=roi_settings.max_days if roi_settings else 0,
            settings_version=roi_settings.settings_version if roi_settings else None,
            total_runs=roi_settings.total_runs if roi_settings else 0,
            last_run_at=(
                roi_settings.last_run_at.isoformat()
                if roi_settings and roi_settings.last_run_at
                else None
            ),
            last_error=roi_settings.last_error if roi_settings else None,
            users_with_deposits=await self.deposit_repo.count_users_with_deposits(),
            users_with_roi=await self.user_repo.count_with_roi(),
            total_deposits=await self.deposit_repo.total_approved(),
            total_roi_paid=await self.ledger_repo.net_total(income_type=IncomeType.ROI.value),
            total_level_paid=await self.ledger_repo.net_total(income_type=IncomeType.LEVEL.value),
            total_rewards_paid=await self.ledger_repo.net_total(income_type=IncomeType.REWARD.value),
        )
