"""
Business constants.

Defaults for ROI, level income and rank rules. Admin-maintained values in
the database take precedence over these.
"""

from decimal import Decimal

# ========================================================================
# ROI DEFAULTS
# ========================================================================

# 1% per day, capped at 30% lifetime (30 accrual days)
DEFAULT_DAILY_ROI = Decimal("0.01")
DEFAULT_MAX_ROI = Decimal("0.30")

ROI_PLAN_DAILY = "daily"
ROI_PLAN_WEEKLY = "weekly"
ROI_PLAN_MONTHLY = "monthly"
ROI_PLAN_TYPES = (ROI_PLAN_DAILY, ROI_PLAN_WEEKLY, ROI_PLAN_MONTHLY)

# Days per plan unit when converting a plan percentage to a daily rate
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30

# ========================================================================
# REFERRAL / LEVEL INCOME
# ========================================================================

MAX_LEVELS = 30
MAX_REFERRAL_DEPTH = 30

# Minimum lifetime approved deposits for an account to count as active
ACTIVATION_THRESHOLD = Decimal("20")

# ========================================================================
# RANK LADDER
# ========================================================================

DEFAULT_RANK_COUNT = 7
RANK_TEAM_DEPTH = 7


def default_rank_ladder() -> list[dict[str, Decimal | int]]:
    """Default 7-rank ladder: rank i needs 1000i total, 100i per leg, pays 100i."""
    return [
        {
            "rank": i,
            "total_business": Decimal(1000 * i),
            "power_leg_business": Decimal(100 * i),
            "other_leg_business": Decimal(100 * i),
            "reward_income": Decimal(100 * i),
        }
        for i in range(1, DEFAULT_RANK_COUNT + 1)
    ]


# ========================================================================
# SCHEDULER
# ========================================================================

DEFAULT_TRIGGER_HOUR = 10
RETRY_BACKOFF_SECONDS = 60 * 60
HEARTBEAT_INTERVAL_HOURS = 6

# Ledger idempotency key formats
ROI_KEY_FORMAT = "roi:{user_id}:{for_date}"
LEVEL_KEY_FORMAT = "level:{user_id}:{for_date}"
REWARD_KEY_FORMAT = "reward:{user_id}:rank{rank}"
REVERSAL_KEY_FORMAT = "reversal:{entry_id}"
