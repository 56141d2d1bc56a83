"""
Referral services.

Graph traversal over referral edges and edge creation at registration.
"""

from payout_engine.services.referral.graph_reader import (
    LegSplit,
    ReferralGraphReader,
    TeamLevel,
    TeamSnapshot,
)

__all__ = [
    "LegSplit",
    "ReferralGraphReader",
    "TeamLevel",
    "TeamSnapshot",
]
