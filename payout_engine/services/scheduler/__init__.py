"""
Payout scheduling.

Persistent state machine deciding when the daily payout runs.
"""

from payout_engine.services.scheduler.coordinator import (
    PayoutScheduleCoordinator,
    RecoveryAction,
    RecoveryDecision,
    RunOutcome,
    ScheduledRunResult,
    next_run_after,
)

__all__ = [
    "PayoutScheduleCoordinator",
    "RecoveryAction",
    "RecoveryDecision",
    "RunOutcome",
    "ScheduledRunResult",
    "next_run_after",
]
