"""
Level commission services.

Pure eligibility checks and the per-level commission calculation.
"""

from payout_engine.services.commission.eligibility import meets_level
from payout_engine.services.commission.level_income import (
    LevelIncome,
    LevelIncomeLine,
    calculate_level_income,
)

__all__ = [
    "LevelIncome",
    "LevelIncomeLine",
    "calculate_level_income",
    "meets_level",
]
