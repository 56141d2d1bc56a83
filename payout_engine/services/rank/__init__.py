"""
Rank services.
"""

from payout_engine.services.rank.evaluator import qualifies, select_rank
from payout_engine.services.rank.service import (
    RankBatchSummary,
    RankEvaluation,
    RankService,
)

__all__ = [
    "RankBatchSummary",
    "RankEvaluation",
    "RankService",
    "qualifies",
    "select_rank",
]
