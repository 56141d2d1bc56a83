"""
Rank service.

Evaluates users against the rank ladder and applies promotions.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payout_engine.config.constants import RANK_TEAM_DEPTH
from payout_engine.config.settings import settings
from payout_engine.repositories.rank_rule_repository import RankRuleRepository
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.services.notification_service import NotificationService
from payout_engine.services.payout.poster import PayoutPoster
from payout_engine.services.rank.evaluator import select_rank
from payout_engine.services.referral.graph_reader import ReferralGraphReader
from payout_engine.utils.datetime_utils import local_date, utc_now
from payout_engine.utils.db_decorators import with_rollback_on_error
from payout_engine.utils.exceptions import NotFoundError, is_skippable
from payout_engine.utils.validation import format_currency


@dataclass
class RankEvaluation:
    """Result of evaluating one user."""

    user_id: int
    previous_rank: int
    new_rank: int
    promoted: bool = False
    reward: Decimal = Decimal("0")
    power_leg: Decimal = Decimal("0")
    other_leg: Decimal = Decimal("0")


@dataclass
class RankBatchSummary:
    """Result of a full ladder pass."""

    evaluated: int = 0
    promoted: int = 0
    skipped: int = 0
    total_rewards: Decimal = Decimal("0")
    promotions: list[RankEvaluation] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"evaluated {self.evaluated}, promoted {self.promoted}, "
            f"rewards {format_currency(self.total_rewards)}, skipped {self.skipped}"
        )


class RankService:
    """
    Rank evaluation.

    Only promotions have effects. Rank, reward, leg figures, the reward
    ledger entry, the balance credit and the notification are committed
    as one unit.
    """

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """
        Initialize rank service.

        Args:
            session_factory: Factory for per-user sessions
        """
        self.session_factory = session_factory

    async def evaluate_user(
        self, user_id: int, today: date | None = None
    ) -> RankEvaluation:
        """
        Evaluate one user and apply a promotion if earned.

        Args:
            user_id: User to evaluate
            today: Promotion date for the ledger (defaults to today)

        Returns:
            RankEvaluation

        Raises:
            NotFoundError: User does not exist
        """
        today = today or local_date(utc_now(), settings.tz)
        async with self.session_factory() as session:
            return await self._evaluate(session, user_id, today)

    @with_rollback_on_error
    async def _evaluate(
        self, session: AsyncSession, user_id: int, today: date
    ) -> RankEvaluation:
        user_repo = UserRepository(session)
        user = await user_repo.get_by_id(user_id, for_update=True)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        legs = await ReferralGraphReader(session).leg_business(
            user_id, RANK_TEAM_DEPTH
        )
        ladder = await RankRuleRepository(session).get_ladder()
        rule = select_rank(legs, ladder)

        evaluation = RankEvaluation(
            user_id=user_id,
            previous_rank=user.rank,
            new_rank=user.rank,
            power_leg=legs.power_leg,
            other_leg=legs.other_leg,
        )

        if user.is_blocked or rule is None or rule.rank <= user.rank:
            await session.rollback()
            return evaluation

        description = (
            f"Rank {rule.rank} Reward - Power Leg: {format_currency(legs.power_leg)}, "
            f"Other Legs: {format_currency(legs.other_leg)}"
        )
        entry = await PayoutPoster(session).post_reward(
            user_id, rule, today, description=description
        )

        user.rank = rule.rank
        user.reward = Decimal(rule.reward_income)
        user.power_leg_business = legs.power_leg
        user.other_leg_business = legs.other_leg

        credited = Decimal(entry.amount) if entry is not None else Decimal("0")
        await NotificationService(session).stage(
            user_id,
            f"Congratulations! You achieved Rank {rule.rank} with a reward of "
            f"{format_currency(rule.reward_income)} based on your power leg "
            f"({format_currency(legs.power_leg)}) and other legs "
            f"({format_currency(legs.other_leg)}) performance.",
        )
        await session.commit()

        evaluation.new_rank = rule.rank
        evaluation.promoted = True
        evaluation.reward = credited

        logger.info(
            f"User {user_id} promoted to rank {rule.rank}",
            extra={
                "user_id": user_id,
                "previous_rank": evaluation.previous_rank,
                "rank": rule.rank,
                "reward": str(credited),
            },
        )
        return evaluation

    async def evaluate_all(self, today: date | None = None) -> RankBatchSummary:
        """
        Evaluate every non-blocked user.

        A failure on one user is logged and counted; the batch continues
        unless the error is transient.

        Returns:
            RankBatchSummary
        """
        today = today or local_date(utc_now(), settings.tz)
        async with self.session_factory() as session:
            user_ids = await UserRepository(session).get_unblocked_ids()

        summary = RankBatchSummary()
        for user_id in user_ids:
            try:
                evaluation = await self.evaluate_user(user_id, today)
            except Exception as e:
                if not is_skippable(e):
                    raise
                summary.skipped += 1
                logger.warning(
                    f"Rank evaluation skipped: {e}",
                    extra={"user_id": user_id},
                )
                continue

            summary.evaluated += 1
            if evaluation.promoted:
                summary.promoted += 1
                summary.total_rewards += evaluation.reward
                summary.promotions.append(evaluation)

        logger.info(f"Rank evaluation complete: {summary}")
        return summary
