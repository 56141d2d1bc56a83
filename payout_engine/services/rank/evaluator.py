"""
Rank selection.
"""

from collections.abc import Sequence
from decimal import Decimal

from payout_engine.models.rank_rule import RankRule
from payout_engine.services.referral.graph_reader import LegSplit


def qualifies(legs: LegSplit, rule: RankRule) -> bool:
    """All three thresholds of ``rule`` are met."""
    return (
        legs.total_business >= Decimal(rule.total_business)
        and legs.power_leg >= Decimal(rule.power_leg_business)
        and legs.other_leg >= Decimal(rule.other_leg_business)
    )


def select_rank(
    legs: LegSplit, ladder: Sequence[RankRule]
) -> RankRule | None:
    """
    Highest rank whose thresholds are all met.

    The ladder need not be monotonic, so every rule is checked rather
    than stopping at the first miss.

    Args:
        legs: Business split of the user
        ladder: Rank rules in any order

    Returns:
        Qualifying rule with the largest rank, or None
    """
    best: RankRule | None = None
    for rule in ladder:
        if qualifies(legs, rule) and (best is None or rule.rank > best.rank):
            best = rule
    return best
