"""
Payout services.

The poster applies postings exactly once; the daily runner drives it.
"""

from payout_engine.services.payout.daily_runner import (
    DailyPayoutRunner,
    RunSummary,
)
from payout_engine.services.payout.poster import PayoutPoster, PostingResult

__all__ = [
    "DailyPayoutRunner",
    "PayoutPoster",
    "PostingResult",
    "RunSummary",
]
