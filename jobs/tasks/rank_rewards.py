"""
Rank reward task.

Evaluates every user against the rank ladder and pays promotion rewards.
"""

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import jobs.broker  # noqa: F401  (registers the broker before actors)
from jobs.async_runner import local_session_factory, run_async
from payout_engine.services.rank.service import RankService


@dramatiq.actor(max_retries=3, time_limit=1_800_000)  # 30 min
def evaluate_ranks() -> None:
    """Evaluate ranks for all non-blocked users."""
    logger.info("Starting rank evaluation...")
    try:
        result = run_async(_evaluate_with_local_session())
    except Exception as e:
        logger.exception(f"Rank evaluation failed: {e}")
        raise

    logger.info(
        f"Rank evaluation complete: {result['promoted']} promoted, "
        f"rewards: {result['total_rewards']}"
    )


async def _evaluate_with_local_session() -> dict:
    async with local_session_factory() as session_factory:
        return await process_rank_evaluation(session_factory)


async def process_rank_evaluation(
    session_factory: async_sessionmaker[AsyncSession],
) -> dict:
    """
    Async implementation of rank evaluation.

    Returns:
        Result dict with counts and total rewards
    """
    summary = await RankService(session_factory).evaluate_all()
    return {
        "success": True,
        "evaluated": summary.evaluated,
        "promoted": summary.promoted,
        "skipped": summary.skipped,
        "total_rewards": str(summary.total_rewards),
    }
