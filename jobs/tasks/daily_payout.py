"""
Daily payout tasks.

On-demand payout run and income cache refresh. The wall-clock schedule
lives in ``jobs.scheduler``; these actors serve manual admin triggers.
"""

from datetime import date

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import jobs.broker  # noqa: F401  (registers the broker before actors)
from jobs.async_runner import local_session_factory, run_async
from payout_engine.models.enums import TriggerSource
from payout_engine.services.payout.daily_runner import DailyPayoutRunner
from payout_engine.utils.exceptions import InvalidStateError


@dramatiq.actor(max_retries=3, time_limit=3_600_000)  # 1 hour
def run_daily_payout(for_date: str | None = None) -> None:
    """
    Run the daily payout for one calendar day.

    Safe to call any number of times for the same day; users already
    posted are skipped.

    Args:
        for_date: ISO date to pay (defaults to yesterday)
    """
    logger.info(
        f"Starting manual daily payout{f' for {for_date}' if for_date else ''}..."
    )

    try:
        result = run_async(_run_with_local_session(for_date))
    except Exception as e:
        logger.exception(f"Daily payout failed: {e}")
        raise

    if result["success"]:
        logger.info(
            f"Daily payout complete for {result['for_date']}: {result['summary']}"
        )
    else:
        logger.error(f"Daily payout not run: {result.get('error')}")


@dramatiq.actor(max_retries=1, time_limit=3_600_000)
def recalculate_income_caches() -> None:
    """Refresh roi_income and level_income for every user."""
    logger.info("Starting income cache recalculation...")
    try:
        refreshed = run_async(_recalculate_with_local_session())
    except Exception as e:
        logger.exception(f"Income cache recalculation failed: {e}")
        raise
    logger.info(f"Income cache recalculation complete: {refreshed} users")


async def _run_with_local_session(for_date: str | None) -> dict:
    async with local_session_factory() as session_factory:
        return await process_daily_payout(session_factory, for_date)


async def _recalculate_with_local_session() -> int:
    async with local_session_factory() as session_factory:
        return await DailyPayoutRunner(session_factory).recalculate_caches()


async def process_daily_payout(
    session_factory: async_sessionmaker[AsyncSession],
    for_date: str | None = None,
) -> dict:
    """
    Async implementation of the manual payout.

    Args:
        session_factory: Session factory
        for_date: ISO date to pay (defaults to yesterday)

    Returns:
        Result dict with ``success``, ``for_date``, ``summary`` and totals
    """
    runner = DailyPayoutRunner(session_factory)
    day = date.fromisoformat(for_date) if for_date else None

    try:
        summary = await runner.run(for_date=day, trigger=TriggerSource.MANUAL)
    except InvalidStateError as e:
        return {"success": False, "error": str(e)}

    return {
        "success": True,
        "for_date": summary.for_date.isoformat(),
        "summary": str(summary),
        "processed": summary.processed,
        "skipped": summary.skipped,
        "integrity_skipped": summary.integrity_skipped,
        "total_amount": str(summary.credited),
    }
