"""
Database models.

Importing this package registers every table on ``Base.metadata``.
"""

from payout_engine.models.base import Base
from payout_engine.models.deposit import Deposit
from payout_engine.models.kyc import KycHistory, KycRecord
from payout_engine.models.ledger_entry import LedgerEntry
from payout_engine.models.level_rule import LevelRule
from payout_engine.models.notification import Notification
from payout_engine.models.rank_rule import RankRule
from payout_engine.models.referral import ReferralEdge
from payout_engine.models.roi_settings import ROI_SETTINGS_ID, ROISettings
from payout_engine.models.scheduler_state import (
    SCHEDULER_STATE_ID,
    SchedulerState,
)
from payout_engine.models.user import User
from payout_engine.models.withdrawal import Withdrawal

__all__ = [
    "Base",
    "Deposit",
    "KycHistory",
    "KycRecord",
    "LedgerEntry",
    "LevelRule",
    "Notification",
    "RankRule",
    "ReferralEdge",
    "ROISettings",
    "ROI_SETTINGS_ID",
    "SchedulerState",
    "SCHEDULER_STATE_ID",
    "User",
    "Withdrawal",
]
