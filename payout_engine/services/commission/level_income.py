"""
Level income calculator.

Recomputes a user's level commission from scratch on every run.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from payout_engine.models.level_rule import LevelRule
from payout_engine.models.user import User
from payout_engine.services.commission.eligibility import (
    meets_level,
    team_business,
)
from payout_engine.services.referral.graph_reader import TeamSnapshot

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LevelIncomeLine:
    """Commission earned at one level."""

    level: int
    business: Decimal
    percent: Decimal
    income: Decimal
    daily_income: Decimal


@dataclass
class LevelIncome:
    """Level commission totals for one user."""

    total_level_income: Decimal = Decimal("0")
    daily_level_income: Decimal = Decimal("0")
    per_level: list[LevelIncomeLine] = field(default_factory=list)


def _daily_business(members: Sequence[User]) -> Decimal:
    """Business of members that are active, funded and not blocked."""
    return sum(
        (
            Decimal(m.self_deposit)
            for m in members
            if m.is_active and not m.is_blocked and m.self_deposit > 0
        ),
        Decimal("0"),
    )


def calculate_level_income(
    user: User,
    team: TeamSnapshot,
    rules: Sequence[LevelRule],
) -> LevelIncome:
    """
    Level commission over every configured level.

    ``total_level_income`` is the commission on the whole level business;
    ``daily_level_income`` counts only active funded members and is the
    amount posted for one day.

    Args:
        user: User earning the commission
        team: Downline snapshot of ``user``
        rules: Level rules ordered by level

    Returns:
        LevelIncome with one line per qualifying level
    """
    result = LevelIncome()

    for rule in rules:
        if rule.blocked:
            continue

        members = team.members_at(rule.level)
        if not meets_level(user, members, rule):
            continue

        percent = Decimal(rule.income_percent)
        business = team_business(members)
        income = business * percent / HUNDRED
        daily = _daily_business(members) * percent / HUNDRED

        result.total_level_income += income
        result.daily_level_income += daily
        result.per_level.append(
            LevelIncomeLine(
                level=rule.level,
                business=business,
                percent=percent,
                income=income,
                daily_income=daily,
            )
        )

    return result
