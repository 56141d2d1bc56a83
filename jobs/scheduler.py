"""
Payout scheduler process.

Arms APScheduler jobs from the coordinator's persisted state:

- a one-shot ``DateTrigger`` at ``next_run`` that reschedules itself after
  every attempt (next day on success, retry delay on failure)
- a heartbeat every ``scheduler_heartbeat_hours``
- rank evaluation every ``rank_evaluation_interval_hours``

Run with ``python -m jobs.scheduler``.
"""

import asyncio
import signal
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobs.health import set_scheduler, start_health_server, stop_health_server
from payout_engine.config.logging import setup_logging
from payout_engine.config.settings import settings
from payout_engine.services.rank.service import RankService
from payout_engine.services.scheduler.coordinator import (
    PayoutScheduleCoordinator,
    RecoveryAction,
    RunOutcome,
)
from payout_engine.utils.datetime_utils import ensure_aware, utc_now

DAILY_PAYOUT_JOB_ID = "daily_payout"
HEARTBEAT_JOB_ID = "payout_heartbeat"
RANK_EVALUATION_JOB_ID = "rank_evaluation"


class PayoutScheduler:
    """APScheduler wrapper around the payout coordinator."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scheduler: AsyncIOScheduler | None = None,
        coordinator: PayoutScheduleCoordinator | None = None,
    ) -> None:
        """
        Initialize payout scheduler.

        Args:
            session_factory: Session factory for services
            scheduler: APScheduler instance (payout timezone by default)
            coordinator: Payout coordinator (built from the factory by default)
        """
        self.session_factory = session_factory
        self.scheduler = scheduler or AsyncIOScheduler(timezone=settings.tz)
        self.coordinator = coordinator or PayoutScheduleCoordinator(session_factory)
        self.rank_service = RankService(session_factory)

    def arm_payout(self, run_at: datetime | None) -> None:
        """Replace the pending payout trigger with one at ``run_at``."""
        if self.scheduler.get_job(DAILY_PAYOUT_JOB_ID):
            self.scheduler.remove_job(DAILY_PAYOUT_JOB_ID)
        if run_at is None:
            logger.info("Daily payout disarmed")
            return

        self.scheduler.add_job(
            self._run_payout,
            trigger=DateTrigger(run_date=ensure_aware(run_at)),
            id=DAILY_PAYOUT_JOB_ID,
            name="Daily payout",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=None,
        )
        logger.info(f"Daily payout armed for {ensure_aware(run_at).isoformat()}")

    async def _run_payout(self) -> None:
        try:
            result = await self.coordinator.run_scheduled(utc_now())
        except Exception as e:
            logger.exception(f"Scheduled payout crashed: {e}")
            self.arm_payout(utc_now() + self.coordinator.retry_delay)
            return

        if result.outcome in (RunOutcome.COMPLETED, RunOutcome.RETRY):
            self.arm_payout(result.next_run)
        else:
            logger.info(f"Daily payout not rescheduled: {result.outcome.value}")
            self.arm_payout(None)

    async def _heartbeat(self) -> None:
        try:
            await self.coordinator.heartbeat(utc_now())
        except Exception as e:
            logger.error(f"Payout heartbeat failed: {e}")

    async def _evaluate_ranks(self) -> None:
        try:
            await self.rank_service.evaluate_all()
        except Exception as e:
            logger.exception(f"Rank evaluation failed: {e}")

    async def start(self, now: datetime | None = None) -> RecoveryAction:
        """
        Recover persisted intent, arm jobs and start APScheduler.

        Returns:
            Recovery action taken
        """
        now = now or utc_now()
        decision = await self.coordinator.recover(now)

        if decision.action in (RecoveryAction.RESUME, RecoveryAction.RESTART):
            self.arm_payout(decision.next_run)

        self.scheduler.add_job(
            self._heartbeat,
            trigger=IntervalTrigger(hours=settings.scheduler_heartbeat_hours),
            id=HEARTBEAT_JOB_ID,
            name="Payout scheduler heartbeat",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self._evaluate_ranks,
            trigger=IntervalTrigger(hours=settings.rank_evaluation_interval_hours),
            id=RANK_EVALUATION_JOB_ID,
            name="Rank evaluation",
            replace_existing=True,
            max_instances=1,
            next_run_time=now + timedelta(minutes=1),
        )

        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(f"Payout scheduler process started (recovery: {decision.action.value})")
        return decision.action

    async def enable(self) -> None:
        """Arm the daily schedule (admin "start")."""
        state = await self.coordinator.start(utc_now())
        self.arm_payout(state.next_run)

    async def disable(self) -> None:
        """Disarm the daily schedule (admin "stop")."""
        await self.coordinator.stop("disabled by admin")
        self.arm_payout(None)

    async def settings_changed(self) -> None:
        """Re-arm after ROI settings were saved."""
        state = await self.coordinator.on_settings_changed(utc_now())
        self.arm_payout(state.next_run if state.is_running else None)

    def shutdown(self) -> None:
        """Stop APScheduler without waiting for running jobs."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)


async def main() -> None:
    """Scheduler process entry point."""
    from payout_engine.config.database import async_engine, async_session_maker

    setup_logging("payout_scheduler")

    payout_scheduler = PayoutScheduler(async_session_maker)
    await payout_scheduler.start()
    set_scheduler(payout_scheduler.scheduler, payout_scheduler.coordinator)
    health_runner = await start_health_server(port=settings.health_check_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        payout_scheduler.shutdown()
        await stop_health_server(health_runner)
        await async_engine.dispose()
        logger.info("Payout scheduler process stopped")


if __name__ == "__main__":
    asyncio.run(main())
