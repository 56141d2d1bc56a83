"""
Enumerations used by models and services.

Values are stored as plain strings in the database.
"""

from enum import Enum


class DepositStatus(str, Enum):
    """Deposit lifecycle."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WithdrawalStatus(str, Enum):
    """Withdrawal lifecycle."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WithdrawalType(str, Enum):
    """Which funds a withdrawal draws on."""

    PRINCIPAL = "principal"
    INCOME = "income"


class KycStatus(str, Enum):
    """KYC review status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class IncomeType(str, Enum):
    """Closed set of ledger income types."""

    ROI = "roi"
    LEVEL = "level"
    REWARD = "reward"


class LedgerStatus(str, Enum):
    """Ledger entry status."""

    CREDITED = "credited"
    REVERSAL = "reversal"


class ROIStatus(str, Enum):
    """Global ROI switch."""

    ACTIVE = "active"
    PAUSED = "paused"


class SchedulerStatus(str, Enum):
    """Scheduler state machine states."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    RETRY_BACKOFF = "retry_backoff"


class TriggerSource(str, Enum):
    """Who asked for a payout run."""

    MANUAL = "manual"
    SCHEDULED = "scheduled"
    RECOVERY = "recovery"
