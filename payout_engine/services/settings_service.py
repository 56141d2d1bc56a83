"""
Settings service.

Admin maintenance of ROI settings, level rules and the rank ladder.
Invalid input is rejected here, before anything is stored.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config.constants import (
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    MAX_LEVELS,
    ROI_PLAN_DAILY,
    ROI_PLAN_TYPES,
    ROI_PLAN_WEEKLY,
    default_rank_ladder,
)
from payout_engine.models.enums import ROIStatus
from payout_engine.models.level_rule import LevelRule
from payout_engine.models.rank_rule import RankRule
from payout_engine.models.roi_settings import ROI_SETTINGS_ID, ROISettings
from payout_engine.repositories.level_rule_repository import (
    LevelRuleRepository,
)
from payout_engine.repositories.rank_rule_repository import RankRuleRepository
from payout_engine.repositories.roi_settings_repository import (
    ROISettingsRepository,
)
from payout_engine.utils.datetime_utils import epoch_millis, utc_now
from payout_engine.utils.db_decorators import with_rollback_on_error
from payout_engine.utils.exceptions import BusinessRuleViolation, NotFoundError
from payout_engine.utils.validation import (
    to_decimal,
    validate_amount,
    validate_percent,
)

RATE_QUANT = Decimal("0.0000000001")
HUNDRED = Decimal("100")

LEVEL_CONDITION_FIELDS = (
    "self_investment_condition",
    "total_team_business_condition",
)
RANK_THRESHOLD_FIELDS = (
    "total_business",
    "power_leg_business",
    "other_leg_business",
    "reward_income",
)


def convert_plan(
    plan_type: str, percentage: Decimal, duration: int
) -> tuple[Decimal, Decimal, int]:
    """
    Convert an admin ROI plan into daily rate, lifetime cap and accrual days.

    - daily: ``percentage`` per day for ``duration`` days
    - weekly: ``percentage`` per week, paid daily, for ``duration`` weeks
    - monthly: ``percentage`` per month, paid daily, for ``duration`` months

    Args:
        plan_type: daily, weekly or monthly
        percentage: Plan percentage
        duration: Plan length in plan units

    Returns:
        Tuple of (daily_roi, max_roi, max_days)

    Raises:
        BusinessRuleViolation: Unknown plan or non-positive inputs
    """
    if plan_type not in ROI_PLAN_TYPES:
        raise BusinessRuleViolation(
            f"plan_type must be one of {', '.join(ROI_PLAN_TYPES)}"
        )
    percentage = validate_amount(percentage, "percentage")
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise BusinessRuleViolation("duration must be a positive whole number")

    rate = percentage / HUNDRED
    max_roi = rate * duration
    if plan_type == ROI_PLAN_DAILY:
        daily, max_days = rate, duration
    elif plan_type == ROI_PLAN_WEEKLY:
        daily, max_days = rate / DAYS_PER_WEEK, duration * DAYS_PER_WEEK
    else:
        daily, max_days = rate / DAYS_PER_MONTH, duration * DAYS_PER_MONTH

    return daily.quantize(RATE_QUANT, rounding=ROUND_DOWN), max_roi, max_days


def validate_level_rule(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate one level rule.

    Raises:
        BusinessRuleViolation: Percent outside 0-100 (2 dp) or negative threshold
    """
    rule: dict[str, Any] = {
        "income_percent": validate_percent(
            data.get("income_percent", 0), "income_percent"
        ),
        "blocked": bool(data.get("blocked", False)),
    }
    for name in LEVEL_CONDITION_FIELDS:
        rule[name] = validate_amount(data.get(name, 0), name, allow_zero=True)

    size = data.get("total_team_size_condition", 0)
    if isinstance(size, bool) or int(size) != size or size < 0:
        raise BusinessRuleViolation(
            "total_team_size_condition must be a non-negative whole number"
        )
    rule["total_team_size_condition"] = int(size)
    return rule


def validate_rank_rule(data: Mapping[str, Any]) -> dict[str, Decimal]:
    """
    Validate one rank rule.

    Raises:
        BusinessRuleViolation: Negative threshold or reward above total business
    """
    rule = {
        name: validate_amount(data.get(name, 0), name, allow_zero=True)
        for name in RANK_THRESHOLD_FIELDS
    }
    if rule["reward_income"] > rule["total_business"]:
        raise BusinessRuleViolation(
            f"reward_income ({rule['reward_income']}) cannot exceed "
            f"total_business ({rule['total_business']})"
        )
    return rule


class SettingsService:
    """Admin configuration."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize settings service."""
        self.session = session
        self.roi_repo = ROISettingsRepository(session)
        self.level_repo = LevelRuleRepository(session)
        self.rank_repo = RankRuleRepository(session)

    # ========================================================================
    # ROI SETTINGS
    # ========================================================================

    async def get_roi_settings(self) -> ROISettings | None:
        """Current ROI settings."""
        return await self.roi_repo.get_current()

    @with_rollback_on_error
    async def save_roi_settings(
        self,
        plan_type: str,
        percentage: Decimal,
        duration: int,
        status: ROIStatus | str = ROIStatus.ACTIVE,
        now: datetime | None = None,
    ) -> ROISettings:
        """
        Save ROI settings and bump the settings version.

        The version is a millisecond timestamp forced to be strictly
        greater than the previous one, so an armed schedule always sees
        the change.

        Args:
            plan_type: daily, weekly or monthly
            percentage: Plan percentage
            duration: Plan length in plan units
            status: active or paused
            now: Save time

        Returns:
            Stored settings
        """
        status = ROIStatus(status)
        daily_roi, max_roi, max_days = convert_plan(
            plan_type, to_decimal(percentage, "percentage"), duration
        )
        now = now or utc_now()

        current = await self.roi_repo.get_by_id(ROI_SETTINGS_ID, for_update=True)
        previous_version = current.settings_version if current else 0
        version = max(epoch_millis(now), previous_version + 1)

        values = {
            "plan_type": plan_type,
            "percentage": to_decimal(percentage, "percentage"),
            "duration": duration,
            "daily_roi": daily_roi,
            "max_roi": max_roi,
            "stored_max_days": max_days,
            "status": status.value,
            "settings_version": version,
        }
        if current is None:
            current = await self.roi_repo.create(id=ROI_SETTINGS_ID, **values)
        else:
            for key, value in values.items():
                setattr(current, key, value)
        await self.session.commit()

        logger.info(
            f"ROI settings saved: {plan_type} {percentage}% x {duration}",
            extra={
                "daily_roi": str(daily_roi),
                "max_roi": str(max_roi),
                "max_days": max_days,
                "status": status.value,
                "settings_version": version,
            },
        )
        return current

    async def set_roi_status(
        self, status: ROIStatus | str, now: datetime | None = None
    ) -> ROISettings:
        """Pause or resume ROI, keeping the current plan."""
        current = await self.roi_repo.get_current()
        if current is None:
            raise NotFoundError("ROI settings are not configured")
        return await self.save_roi_settings(
            current.plan_type,
            Decimal(current.percentage),
            current.duration,
            status=status,
            now=now,
        )

    # ========================================================================
    # LEVEL RULES
    # ========================================================================

    async def get_level_rules(self) -> list[LevelRule]:
        """Level rules ordered by level."""
        return await self.level_repo.get_ordered()

    @with_rollback_on_error
    async def set_level_rules(
        self, rules: Sequence[Mapping[str, Any]]
    ) -> list[LevelRule]:
        """
        Replace all level rules. Levels are numbered 1..N in list order.

        Raises:
            BusinessRuleViolation: More than 30 rules or an invalid rule
        """
        if len(rules) > MAX_LEVELS:
            raise BusinessRuleViolation(f"At most {MAX_LEVELS} levels are allowed")
        validated = [validate_level_rule(rule) for rule in rules]
        stored = await self.level_repo.replace_all(validated)
        await self.session.commit()
        logger.info(f"Level rules saved: {len(stored)} levels")
        return stored

    async def add_level_rule(self, rule: Mapping[str, Any]) -> list[LevelRule]:
        """Append a level at the bottom of the list."""
        current = await self._level_rule_dicts()
        current.append(dict(rule))
        return await self.set_level_rules(current)

    async def update_level_rule(
        self, level: int, **changes: Any
    ) -> list[LevelRule]:
        """Change fields of one level."""
        current = await self._level_rule_dicts()
        if not 1 <= level <= len(current):
            raise NotFoundError(f"Level {level} not found")
        current[level - 1].update(changes)
        return await self.set_level_rules(current)

    async def remove_level_rule(self, level: int) -> list[LevelRule]:
        """Remove a level; deeper levels move up by one."""
        current = await self._level_rule_dicts()
        if not 1 <= level <= len(current):
            raise NotFoundError(f"Level {level} not found")
        del current[level - 1]
        return await self.set_level_rules(current)

    async def _level_rule_dicts(self) -> list[dict[str, Any]]:
        return [
            {
                "income_percent": rule.income_percent,
                "self_investment_condition": rule.self_investment_condition,
                "total_team_business_condition": rule.total_team_business_condition,
                "total_team_size_condition": rule.total_team_size_condition,
                "blocked": rule.blocked,
            }
            for rule in await self.level_repo.get_ordered()
        ]

    # ========================================================================
    # RANK LADDER
    # ========================================================================

    async def get_rank_rules(self) -> list[RankRule]:
        """Rank ladder ordered by rank."""
        return await self.rank_repo.get_ladder()

    @with_rollback_on_error
    async def set_rank_rules(
        self, rules: Sequence[Mapping[str, Any]]
    ) -> list[RankRule]:
        """
        Replace the ladder. Ranks are numbered 1..M in list order.

        Raises:
            BusinessRuleViolation: Invalid rule (e.g. reward above total business)
        """
        validated = [validate_rank_rule(rule) for rule in rules]
        stored = await self.rank_repo.replace_all(validated)
        await self.session.commit()
        logger.info(f"Rank ladder saved: {len(stored)} ranks")
        return stored

    async def add_rank_rule(
        self, rule: Mapping[str, Any] | None = None
    ) -> list[RankRule]:
        """
        Append a rank at the top of the ladder.

        Without ``rule`` the new rank n gets the default thresholds
        (1000n total, 100n per leg, 100n reward).
        """
        current = await self._rank_rule_dicts()
        if rule is None:
            n = len(current) + 1
            rule = {
                "total_business": Decimal(1000 * n),
                "power_leg_business": Decimal(100 * n),
                "other_leg_business": Decimal(100 * n),
                "reward_income": Decimal(100 * n),
            }
        current.append(dict(rule))
        return await self.set_rank_rules(current)

    async def remove_rank_rule(self, rank: int) -> list[RankRule]:
        """Remove a rank; higher ranks move down by one."""
        current = await self._rank_rule_dicts()
        if not 1 <= rank <= len(current):
            raise NotFoundError(f"Rank {rank} not found")
        del current[rank - 1]
        return await self.set_rank_rules(current)

    async def reset_rank_rules(self) -> list[RankRule]:
        """Restore the default 7-rank ladder."""
        return await self.set_rank_rules(default_rank_ladder())

    async def _rank_rule_dicts(self) -> list[dict[str, Any]]:
        return [
            {name: getattr(rule, name) for name in RANK_THRESHOLD_FIELDS}
            for rule in await self.rank_repo.get_ladder()
        ]
