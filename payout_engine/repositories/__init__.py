"""
Repositories.

Data access layer over the async SQLAlchemy session.
"""

from payout_engine.repositories.base import BaseRepository
from payout_engine.repositories.deposit_repository import DepositRepository
from payout_engine.repositories.kyc_repository import KycRepository
from payout_engine.repositories.ledger_repository import LedgerRepository
from payout_engine.repositories.level_rule_repository import (
    LevelRuleRepository,
)
from payout_engine.repositories.notification_repository import (
    NotificationRepository,
)
from payout_engine.repositories.rank_rule_repository import (
    RankRuleRepository,
)
from payout_engine.repositories.referral_repository import (
    ReferralRepository,
)
from payout_engine.repositories.roi_settings_repository import (
    ROISettingsRepository,
)
from payout_engine.repositories.scheduler_state_repository import (
    SchedulerStateRepository,
)
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.repositories.withdrawal_repository import (
    WithdrawalRepository,
)

__all__ = [
    "BaseRepository",
    "DepositRepository",
    "KycRepository",
    "LedgerRepository",
    "LevelRuleRepository",
    "NotificationRepository",
    "RankRuleRepository",
    "ReferralRepository",
    "ROISettingsRepository",
    "SchedulerStateRepository",
    "UserRepository",
    "WithdrawalRepository",
]
