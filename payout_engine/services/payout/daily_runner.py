"""
Daily payout runner.

Computes and posts ROI and level income for every active user for one
calendar day. Each user is handled in its own session and transaction,
so a failure never affects users already posted.
"""

from dataclasses import dataclass, field
from datetime import date, tzinfo
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payout_engine.config.settings import settings
from payout_engine.models.enums import IncomeType, ROIStatus, TriggerSource
from payout_engine.models.level_rule import LevelRule
from payout_engine.repositories.deposit_repository import DepositRepository
from payout_engine.repositories.level_rule_repository import (
    LevelRuleRepository,
)
from payout_engine.repositories.roi_settings_repository import (
    ROISettingsRepository,
)
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.services.commission.level_income import (
    LevelIncome,
    calculate_level_income,
)
from payout_engine.services.notification_service import NotificationService
from payout_engine.services.payout.poster import PayoutPoster, PostingResult
from payout_engine.services.referral.graph_reader import ReferralGraphReader
from payout_engine.services.roi.calculator import ROIAccrual, calculate_roi
from payout_engine.utils.datetime_utils import previous_day, utc_now
from payout_engine.utils.exceptions import (
    InvalidStateError,
    NotFoundError,
    StaleSettingsError,
    is_skippable,
)
from payout_engine.utils.validation import format_currency


@dataclass(frozen=True)
class RatePlan:
    """Snapshot of the ROI settings used for one run."""

    daily_roi: Decimal
    max_days: int
    settings_version: int


@dataclass
class RunSummary:
    """Outcome of one daily run."""

    for_date: date
    trigger: TriggerSource
    processed: int = 0
    skipped: int = 0
    integrity_skipped: int = 0
    already_posted: int = 0
    credited: Decimal = Decimal("0")
    roi_credited: Decimal = Decimal("0")
    level_credited: Decimal = Decimal("0")
    processed_user_ids: list[int] = field(default_factory=list)
    skipped_user_ids: list[int] = field(default_factory=list)

    def __str__(self) -> str:
        text = (
            f"processed {self.processed}, credited {format_currency(self.credited)}, "
            f"skipped {self.skipped}"
        )
        if self.integrity_skipped:
            text += f", integrity records skipped {self.integrity_skipped}"
        return text


@dataclass
class UserComputation:
    """ROI and level figures computed for one user."""

    user_id: int
    roi: ROIAccrual
    level: LevelIncome
    # Referral edges ignored while reading the team (revisits, missing users)
    integrity_skipped: int = 0


class DailyPayoutRunner:
    """
    Batch driver for the daily payout.

    Per user: deposits, ROI, team, level income, posting, display caches,
    notification. ROI is always computed before level income. When an
    expected settings version is supplied, it is re-checked before every
    user and a mismatch aborts the batch.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tz: tzinfo | None = None,
        max_depth: int | None = None,
    ) -> None:
        """
        Initialize runner.

        Args:
            session_factory: Factory for short-lived sessions
            tz: Timezone defining calendar days (defaults to settings)
            max_depth: Referral depth for level income (defaults to settings)
        """
        self.session_factory = session_factory
        self.tz = tz or settings.tz
        self.max_depth = max_depth or settings.max_referral_depth

    async def run(
        self,
        for_date: date | None = None,
        expected_version: int | None = None,
        trigger: TriggerSource = TriggerSource.MANUAL,
    ) -> RunSummary:
        """
        Post one calendar day for every active, non-blocked user.

        Args:
            for_date: Day to pay (defaults to yesterday in the payout timezone)
            expected_version: Settings version the run was armed with
            trigger: Who requested the run

        Returns:
            RunSummary

        Raises:
            InvalidStateError: ROI settings missing or paused
            StaleSettingsError: Settings changed while the run was in flight
            OperationalError, DBAPIError: Transient storage failure
        """
        for_date = for_date or previous_day(utc_now(), self.tz)
        plan, rules, user_ids = await self._load_inputs()

        logger.info(
            f"Daily payout started for {for_date} ({trigger.value}), {len(user_ids)} users",
            extra={
                "for_date": str(for_date),
                "trigger": trigger.value,
                "settings_version": plan.settings_version,
            },
        )

        summary = RunSummary(for_date=for_date, trigger=trigger)
        for user_id in user_ids:
            if expected_version is not None:
                await self._ensure_current(expected_version, summary)

            try:
                posting, integrity_skipped = await self._process_user(
                    user_id, plan, rules, for_date
                )
            except Exception as e:
                if not is_skippable(e):
                    raise
                summary.skipped += 1
                summary.skipped_user_ids.append(user_id)
                logger.warning(
                    f"User skipped in daily payout: {e}",
                    extra={"user_id": user_id, "for_date": str(for_date)},
                )
                continue

            summary.processed += 1
            summary.processed_user_ids.append(user_id)
            summary.integrity_skipped += integrity_skipped
            if posting.is_noop:
                summary.already_posted += 1
            summary.credited += posting.total_credited
            summary.roi_credited += posting.credited.get(IncomeType.ROI.value, Decimal("0"))
            summary.level_credited += posting.credited.get(IncomeType.LEVEL.value, Decimal("0"))

        await self._record_run(summary)
        logger.info(f"Daily payout finished for {for_date}: {summary}")
        return summary

    async def recalculate_caches(self, for_date: date | None = None) -> int:
        """
        Refresh ``roi_income`` and ``level_income`` for every user.

        Nothing is posted.

        Returns:
            Number of users refreshed
        """
        for_date = for_date or previous_day(utc_now(), self.tz)
        plan, rules, _ = await self._load_inputs(require_active=False)

        async with self.session_factory() as session:
            user_ids = await UserRepository(session).get_all_ids()

        refreshed = 0
        for user_id in user_ids:
            async with self.session_factory() as session:
                try:
                    computed = await self._compute(session, user_id, plan, rules, for_date)
                except NotFoundError:
                    continue
                await UserRepository(session).update_income_caches(
                    user_id,
                    computed.roi.lifetime_roi,
                    computed.level.total_level_income,
                )
                await session.commit()
                refreshed += 1

        logger.info(f"Income caches recalculated for {refreshed} users")
        return refreshed

    async def _load_inputs(
        self, require_active: bool = True
    ) -> tuple[RatePlan, list[LevelRule], list[int]]:
        async with self.session_factory() as session:
            roi_settings = await ROISettingsRepository(session).get_current()
            if roi_settings is None:
                raise InvalidStateError("ROI settings are not configured")
            if require_active and not roi_settings.is_active:
                raise InvalidStateError("ROI is paused")

            plan = RatePlan(
                daily_roi=Decimal(roi_settings.daily_roi),
                max_days=roi_settings.max_days,
                settings_version=roi_settings.settings_version,
            )
            rules = await LevelRuleRepository(session).get_ordered()
            user_ids = await UserRepository(session).get_payout_candidate_ids()
        return plan, rules, user_ids

    async def _ensure_current(
        self, expected_version: int, summary: RunSummary
    ) -> None:
        async with self.session_factory() as session:
            current = await ROISettingsRepository(session).get_version_and_status()

        if current is None:
            reason = "ROI settings were removed"
        elif current[0] != expected_version:
            reason = f"settings version changed ({expected_version} -> {current[0]})"
        elif current[1] != ROIStatus.ACTIVE.value:
            reason = "ROI was paused"
        else:
            return

        logger.warning(
            f"Daily payout aborted: {reason}",
            extra={"processed_users": len(summary.processed_user_ids)},
        )
        raise StaleSettingsError(reason, list(summary.processed_user_ids))

    async def _compute(
        self,
        session: AsyncSession,
        user_id: int,
        plan: RatePlan,
        rules: list[LevelRule],
        for_date: date,
    ) -> UserComputation:
        user = await UserRepository(session).get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        deposits = await DepositRepository(session).get_approved_by_user(user_id)
        roi = calculate_roi(
            deposits, plan.daily_roi, plan.max_days, for_date, self.tz
        )

        team = await ReferralGraphReader(session).team_by_level(
            user_id, self.max_depth
        )
        level = calculate_level_income(user, team, rules)
        return UserComputation(
            user_id=user_id,
            roi=roi,
            level=level,
            integrity_skipped=team.integrity_warnings + team.missing_users,
        )

    async def _process_user(
        self,
        user_id: int,
        plan: RatePlan,
        rules: list[LevelRule],
        for_date: date,
    ) -> tuple[PostingResult, int]:
        async with self.session_factory() as session:
            computed = await self._compute(session, user_id, plan, rules, for_date)

            posting = await PayoutPoster(session).post(
                user_id,
                {
                    IncomeType.ROI: computed.roi.today_roi,
                    IncomeType.LEVEL: computed.level.daily_level_income,
                },
                for_date,
            )

            # Display caches are advisory; a failure here leaves the posting intact
            try:
                await UserRepository(session).update_income_caches(
                    user_id,
                    computed.roi.lifetime_roi,
                    computed.level.total_level_income,
                )
                await session.commit()
            except Exception as e:
                if not is_skippable(e):
                    raise
                await session.rollback()
                logger.warning(
                    f"Income cache update failed: {e}", extra={"user_id": user_id}
                )

            if posting.total_credited > 0:
                await NotificationService(session).notify(
                    user_id,
                    f"Income credited for {for_date.isoformat()}: "
                    f"{format_currency(posting.total_credited)}",
                )
        return posting, computed.integrity_skipped

    async def _record_run(self, summary: RunSummary) -> None:
        async with self.session_factory() as session:
            roi_settings = await ROISettingsRepository(session).get_current()
            if roi_settings is None:
                return
            roi_settings.last_run_at = utc_now()
            roi_settings.total_runs = (roi_settings.total_runs or 0) + 1
            roi_settings.last_processed_users = summary.processed
            roi_settings.last_error = None
            await session.commit()
