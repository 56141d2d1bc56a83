"""
Dramatiq actors.

Importing this package registers every actor on the configured broker.
"""

from jobs.tasks.daily_payout import recalculate_income_caches, run_daily_payout
from jobs.tasks.rank_rewards import evaluate_ranks

__all__ = ["evaluate_ranks", "recalculate_income_caches", "run_daily_payout"]
