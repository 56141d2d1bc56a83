"""
Exception handling utilities.

Defines categorized exception types for proper error handling.
"""

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError


class PayoutEngineError(Exception):
    """Base class for payout engine errors."""


class NotFoundError(PayoutEngineError):
    """Referenced record does not exist."""


class InvalidStateError(PayoutEngineError):
    """Operation not allowed in the record's current state."""


class BusinessRuleViolation(PayoutEngineError):
    """Input rejected at validation time; never posted."""


class DataIntegrityError(PayoutEngineError):
    """A record references data that is missing or inconsistent."""


class StaleSettingsError(PayoutEngineError):
    """
    ROI settings changed (or were paused) while a run was in flight.

    Attributes:
        processed_user_ids: Users already handled by the aborted run
    """

    def __init__(
        self, message: str, processed_user_ids: list[int] | None = None
    ) -> None:
        super().__init__(message)
        self.processed_user_ids = processed_user_ids or []


# Exception categories based on handling strategy

# Retried by the scheduler backoff path
TRANSIENT = (
    OperationalError,
    DBAPIError,
    ConnectionError,
    TimeoutError,
)

# Skip the record, continue the batch
SKIP_RECORD = (
    DataIntegrityError,
    NotFoundError,
    IntegrityError,
)


def is_transient(exc: Exception) -> bool:
    """
    Check if exception is a transient I/O failure.

    Args:
        exc: Exception to check

    Returns:
        True if the failed run should be retried later
    """
    return isinstance(exc, TRANSIENT) and not isinstance(exc, SKIP_RECORD)


def is_skippable(exc: Exception) -> bool:
    """
    Check if exception only invalidates a single record.

    Args:
        exc: Exception to check

    Returns:
        True if the batch may continue
    """
    return isinstance(exc, SKIP_RECORD)
