"""
Payout schedule coordinator.

Owns the persisted scheduler state:

    idle -> scheduled -> running -> scheduled (success)
                                 -> retry_backoff -> scheduled (transient failure)
    any -> idle (stop, or settings changed under a running schedule)

The coordinator decides; ``jobs.scheduler`` arms wall-clock timers at the
``next_run`` it records. Posting idempotency makes overlapping manual,
scheduled and recovery runs safe.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from enum import Enum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payout_engine.config.settings import settings
from payout_engine.models.enums import SchedulerStatus, TriggerSource
from payout_engine.models.roi_settings import ROISettings
from payout_engine.models.scheduler_state import SchedulerState
from payout_engine.repositories.roi_settings_repository import (
    ROISettingsRepository,
)
from payout_engine.repositories.scheduler_state_repository import (
    SchedulerStateRepository,
)
from payout_engine.services.payout.daily_runner import (
    DailyPayoutRunner,
    RunSummary,
)
from payout_engine.utils.datetime_utils import (
    ensure_aware,
    local_date,
    previous_day,
    utc_now,
)
from payout_engine.utils.exceptions import (
    InvalidStateError,
    StaleSettingsError,
    is_transient,
)


class RecoveryAction(str, Enum):
    """What a recovering process should do."""

    IDLE = "idle"
    STALE = "stale"
    RESTART = "restart"
    RESUME = "resume"


class RunOutcome(str, Enum):
    """Result of a scheduled run attempt."""

    COMPLETED = "completed"
    STALE = "stale"
    RETRY = "retry"
    NOT_RUNNING = "not_running"


@dataclass
class ScheduledRunResult:
    """Outcome of ``run_scheduled``."""

    outcome: RunOutcome
    next_run: datetime | None = None
    summary: RunSummary | None = None
    error: str | None = None


@dataclass
class RecoveryDecision:
    """Outcome of ``recover``."""

    action: RecoveryAction
    next_run: datetime | None = None
    run_result: ScheduledRunResult | None = None


def next_run_after(now: datetime, trigger_hour: int, tz: tzinfo) -> datetime:
    """
    Next wall-clock trigger strictly after ``now``.

    Today at ``trigger_hour`` in ``tz`` if that is still ahead, otherwise
    tomorrow at the same hour.
    """
    local_now = ensure_aware(now).astimezone(tz)
    day = local_date(local_now, tz)
    candidate = datetime(day.year, day.month, day.day, trigger_hour, tzinfo=tz)
    if candidate <= local_now:
        tomorrow = day + timedelta(days=1)
        candidate = datetime(
            tomorrow.year, tomorrow.month, tomorrow.day, trigger_hour, tzinfo=tz
        )
    return candidate


def _is_stale(state: SchedulerState, roi_settings: ROISettings | None) -> str | None:
    """Reason the armed schedule no longer matches the settings, if any."""
    if roi_settings is None:
        return "ROI settings missing"
    if not roi_settings.is_active:
        return "ROI paused"
    if state.settings_version != roi_settings.settings_version:
        return (
            f"settings version changed "
            f"({state.settings_version} -> {roi_settings.settings_version})"
        )
    return None


class PayoutScheduleCoordinator:
    """
    Daily payout trigger coordinator.

    Every transition is persisted in ``SchedulerState`` so a restarted
    process can tell whether to resume, restart or stand down.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        runner: DailyPayoutRunner | None = None,
        trigger_hour: int | None = None,
        tz: tzinfo | None = None,
        retry_delay: timedelta | None = None,
    ) -> None:
        """
        Initialize coordinator.

        Args:
            session_factory: Factory for short-lived sessions
            runner: Daily payout runner (built from the factory by default)
            trigger_hour: Local hour of the daily run
            tz: Payout timezone
            retry_delay: Backoff after a transient failure
        """
        self.session_factory = session_factory
        self.tz = tz or settings.tz
        self.runner = runner or DailyPayoutRunner(session_factory, tz=self.tz)
        self.trigger_hour = (
            settings.payout_trigger_hour if trigger_hour is None else trigger_hour
        )
        self.retry_delay = retry_delay or timedelta(
            seconds=settings.payout_retry_delay_seconds
        )

    def next_run_after(self, now: datetime) -> datetime:
        """Next trigger after ``now`` for this coordinator, as a UTC instant."""
        return next_run_after(now, self.trigger_hour, self.tz).astimezone(UTC)

    async def get_state(self) -> SchedulerState:
        """Current persisted state (created idle on first use)."""
        async with self.session_factory() as session:
            state = await SchedulerStateRepository(session).get_or_create()
            await session.commit()
            return state

    async def start(self, now: datetime | None = None) -> SchedulerState:
        """
        Arm the daily schedule.

        Args:
            now: Current time

        Returns:
            Scheduler state after arming

        Raises:
            InvalidStateError: ROI settings missing or paused
        """
        now = now or utc_now()
        async with self.session_factory() as session:
            roi_settings = await ROISettingsRepository(session).get_current()
            if roi_settings is None or not roi_settings.is_active:
                raise InvalidStateError(
                    "Cannot start the payout scheduler while ROI is not active"
                )

            state = await SchedulerStateRepository(session).get_or_create()
            state.is_running = True
            state.status = SchedulerStatus.SCHEDULED.value
            state.started_at = now
            state.next_run = self.next_run_after(now)
            state.settings_version = roi_settings.settings_version
            state.last_error = None
            await session.commit()

        logger.info(
            f"Payout scheduler started, next run at {state.next_run.isoformat()}",
            extra={"settings_version": state.settings_version},
        )
        return state

    async def stop(self, reason: str | None = None) -> SchedulerState:
        """Disarm the schedule."""
        async with self.session_factory() as session:
            state = await SchedulerStateRepository(session).get_or_create()
            state.is_running = False
            state.status = SchedulerStatus.IDLE.value
            state.next_run = None
            await session.commit()

        logger.info(f"Payout scheduler stopped{f': {reason}' if reason else ''}")
        return state

    async def run_manual(self, now: datetime | None = None) -> RunSummary:
        """
        Run the payout immediately for yesterday.

        Leaves the scheduler state untouched; overlapping with a scheduled
        run is safe because postings are idempotent.
        """
        now = now or utc_now()
        return await self.runner.run(
            for_date=previous_day(now, self.tz),
            trigger=TriggerSource.MANUAL,
        )

    async def run_scheduled(
        self,
        now: datetime | None = None,
        trigger: TriggerSource = TriggerSource.SCHEDULED,
    ) -> ScheduledRunResult:
        """
        Execute the armed run.

        Args:
            now: Current time
            trigger: Scheduled timer or recovery

        Returns:
            ScheduledRunResult with the outcome and the next run time
        """
        now = now or utc_now()
        expected_version: int | None = None

        async with self.session_factory() as session:
            state = await SchedulerStateRepository(session).get_or_create()
            if not state.is_running:
                await session.commit()
                return ScheduledRunResult(outcome=RunOutcome.NOT_RUNNING)

            roi_settings = await ROISettingsRepository(session).get_current()
            stale_reason = _is_stale(state, roi_settings)
            if stale_reason is None:
                state.status = SchedulerStatus.RUNNING.value
                expected_version = state.settings_version
            await session.commit()

        if stale_reason is not None:
            await self.stop(stale_reason)
            return ScheduledRunResult(outcome=RunOutcome.STALE, error=stale_reason)

        try:
            summary = await self.runner.run(
                for_date=previous_day(now, self.tz),
                expected_version=expected_version,
                trigger=trigger,
            )
        except (StaleSettingsError, InvalidStateError) as e:
            await self.stop(str(e))
            return ScheduledRunResult(outcome=RunOutcome.STALE, error=str(e))
        except Exception as e:
            if not is_transient(e):
                raise
            return await self._enter_backoff(now, e)

        next_run = self.next_run_after(now)
        async with self.session_factory() as session:
            state = await SchedulerStateRepository(session).get_or_create()
            state.status = SchedulerStatus.SCHEDULED.value
            state.last_run = now
            state.next_run = next_run
            state.last_error = None
            await session.commit()

        return ScheduledRunResult(
            outcome=RunOutcome.COMPLETED, next_run=next_run, summary=summary
        )

    async def recover(self, now: datetime | None = None) -> RecoveryDecision:
        """
        Re-derive scheduling intent after a process restart.

        A schedule that crashed mid-run or whose trigger time passed is run
        immediately; the poster skips anything already posted.
        """
        now = now or utc_now()

        async with self.session_factory() as session:
            state = await SchedulerStateRepository(session).get_or_create()
            roi_settings = await ROISettingsRepository(session).get_current()
            is_running = state.is_running
            status = state.status
            next_run = ensure_aware(state.next_run) if state.next_run else None
            stale_reason = _is_stale(state, roi_settings) if is_running else None
            await session.commit()

        if not is_running:
            return RecoveryDecision(action=RecoveryAction.IDLE)

        if stale_reason is not None:
            await self.stop(stale_reason)
            logger.warning(f"Recovered schedule is stale: {stale_reason}")
            return RecoveryDecision(action=RecoveryAction.STALE)

        if (
            status == SchedulerStatus.RUNNING.value
            or next_run is None
            or next_run <= now
        ):
            logger.warning(
                "Recovered schedule missed its run, running now",
                extra={"status": status, "next_run": str(next_run)},
            )
            result = await self.run_scheduled(now, trigger=TriggerSource.RECOVERY)
            return RecoveryDecision(
                action=RecoveryAction.RESTART,
                next_run=result.next_run,
                run_result=result,
            )

        logger.info(f"Recovered schedule resumes at {next_run.isoformat()}")
        return RecoveryDecision(action=RecoveryAction.RESUME, next_run=next_run)

    async def on_settings_changed(
        self, now: datetime | None = None
    ) -> SchedulerState:
        """
        React to saved ROI settings.

        A running schedule is re-armed against the new version, or stopped
        if ROI was paused. An idle scheduler stays idle.
        """
        now = now or utc_now()
        async with self.session_factory() as session:
            state = await SchedulerStateRepository(session).get_or_create()
            roi_settings = await ROISettingsRepository(session).get_current()
            if not state.is_running:
                await session.commit()
                return state
            deactivated = roi_settings is None or not roi_settings.is_active
            if not deactivated:
                state.settings_version = roi_settings.settings_version
                state.status = SchedulerStatus.SCHEDULED.value
                state.next_run = self.next_run_after(now)
            await session.commit()

        if deactivated:
            return await self.stop("ROI settings changed to inactive")

        logger.info(
            "Payout schedule re-armed after settings change",
            extra={"settings_version": state.settings_version},
        )
        return state

    async def heartbeat(self, now: datetime | None = None) -> bool:
        """
        Record a liveness mark while the schedule is armed.

        Returns:
            True if the scheduler is running
        """
        now = now or utc_now()
        async with self.session_factory() as session:
            state = await SchedulerStateRepository(session).get_or_create()
            if not state.is_running:
                await session.commit()
                return False

            roi_settings = await ROISettingsRepository(session).get_current()
            if roi_settings is not None:
                roi_settings.scheduler_heartbeat = now

            overdue = (
                state.next_run is not None
                and ensure_aware(state.next_run) + self.retry_delay < now
            )
            await session.commit()

        if overdue:
            logger.warning(
                "Payout scheduler is overdue",
                extra={"next_run": str(state.next_run)},
            )
        else:
            logger.debug("Payout scheduler heartbeat")
        return True

    async def _enter_backoff(
        self, now: datetime, error: Exception
    ) -> ScheduledRunResult:
        retry_at = ensure_aware(now).astimezone(UTC) + self.retry_delay
        message = f"{type(error).__name__}: {error}"

        async with self.session_factory() as session:
            state = await SchedulerStateRepository(session).get_or_create()
            state.status = SchedulerStatus.RETRY_BACKOFF.value
            state.next_run = retry_at
            state.last_error = message
            roi_settings = await ROISettingsRepository(session).get_current()
            if roi_settings is not None:
                roi_settings.last_error = message
            await session.commit()

        logger.error(
            f"Scheduled payout failed, retrying at {retry_at.isoformat()}: {message}"
        )
        return ScheduledRunResult(
            outcome=RunOutcome.RETRY, next_run=retry_at, error=message
        )
