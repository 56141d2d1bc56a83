"""
Level eligibility.

Decides whether a user qualifies for commission at one referral depth.
"""

from collections.abc import Sequence
from decimal import Decimal

from payout_engine.models.level_rule import LevelRule
from payout_engine.models.user import User


def team_business(members: Sequence[User]) -> Decimal:
    """Sum of self_deposit over non-blocked members."""
    return sum(
        (Decimal(m.self_deposit) for m in members if not m.is_blocked),
        Decimal("0"),
    )


def team_size(members: Sequence[User]) -> int:
    """Count of non-blocked members."""
    return sum(1 for m in members if not m.is_blocked)


def meets_level(
    user: User, level_team: Sequence[User], rule: LevelRule
) -> bool:
    """
    Check the three level conditions.

    A blocked rule never qualifies. Otherwise all of self investment,
    team business and team size must reach their thresholds; blocked
    team members count for neither business nor size.

    Args:
        user: User earning the commission
        level_team: Members at the rule's depth
        rule: Level rule

    Returns:
        True if commission is due at this level
    """
    if rule.blocked:
        return False

    return (
        Decimal(user.self_deposit) >= Decimal(rule.self_investment_condition)
        and team_business(level_team)
        >= Decimal(rule.total_team_business_condition)
        and team_size(level_team) >= rule.total_team_size_condition
    )
