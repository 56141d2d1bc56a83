"""
Unit tests for datetime, validation and error helpers.
"""

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from payout_engine.utils.datetime_utils import (
    days_between,
    ensure_aware,
    epoch_millis,
    local_date,
    previous_day,
    start_of_day,
)
from payout_engine.utils.db_decorators import with_rollback_on_error
from payout_engine.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    StaleSettingsError,
    is_skippable,
    is_transient,
)
from payout_engine.utils.validation import (
    format_currency,
    normalize_email,
    quantize_money,
    to_decimal,
    validate_amount,
    validate_percent,
)

EST = timezone(timedelta(hours=-5))


class TestDatetimeUtils:
    """Calendar-day helpers."""

    def test_ensure_aware_naive_is_utc(self):
        """Naive values get UTC attached."""
        assert ensure_aware(datetime(2026, 1, 1, 12)).tzinfo is UTC

    def test_ensure_aware_keeps_offset(self):
        """Aware values are returned unchanged."""
        value = datetime(2026, 1, 1, 12, tzinfo=EST)
        assert ensure_aware(value) is value

    def test_local_date_converts(self):
        """03:00 UTC is still the previous day in EST."""
        assert local_date(datetime(2026, 1, 2, 3, tzinfo=UTC), EST) == date(2026, 1, 1)

    def test_start_of_day(self):
        """Midnight in the requested zone."""
        start = start_of_day(datetime(2026, 3, 4, 17, 45, tzinfo=UTC))
        assert start == datetime(2026, 3, 4, tzinfo=UTC)

    def test_days_between_ignores_time(self):
        """Only calendar days count."""
        assert days_between(
            datetime(2026, 1, 1, 23, tzinfo=UTC), datetime(2026, 1, 3, 1, tzinfo=UTC)
        ) == 2

    def test_previous_day(self):
        """Yesterday in the payout zone."""
        now = datetime(2026, 1, 2, 3, tzinfo=UTC)
        assert previous_day(now) == date(2026, 1, 1)
        assert previous_day(now, EST) == date(2025, 12, 31)

    def test_epoch_millis(self):
        """Millisecond timestamps."""
        assert epoch_millis(datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)) == 1000


class TestValidation:
    """Input validation helpers."""

    def test_to_decimal_from_float_keeps_text(self):
        """0.1 stays 0.1."""
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_to_decimal_rejects(self, value):
        """Non-numbers and non-finite values are rejected."""
        with pytest.raises(BusinessRuleViolation):
            to_decimal(value)

    def test_quantize_money_truncates(self):
        """Never rounds up."""
        assert quantize_money(Decimal("1.123456789")) == Decimal("1.12345678")

    def test_validate_amount_positive(self):
        """Positive amounts pass through as Decimal."""
        assert validate_amount("12.5") == Decimal("12.5")

    @pytest.mark.parametrize("value", [0, -1, "-0.01"])
    def test_validate_amount_rejects(self, value):
        """Zero and negatives are rejected by default."""
        with pytest.raises(BusinessRuleViolation):
            validate_amount(value)

    def test_validate_amount_allow_zero(self):
        """Thresholds may be zero."""
        assert validate_amount(0, allow_zero=True) == Decimal("0")

    @pytest.mark.parametrize("value", ["0", "12.25", "100"])
    def test_validate_percent_accepts(self, value):
        """0..100 with two decimals."""
        assert validate_percent(value) == Decimal(value)

    @pytest.mark.parametrize("value", ["-0.01", "100.01", "1.234"])
    def test_validate_percent_rejects(self, value):
        """Out of range or too precise."""
        with pytest.raises(BusinessRuleViolation):
            validate_percent(value)

    def test_normalize_email(self):
        """Trimmed and lowercased."""
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize("value", ["", "alice", "@example.com", "alice@"])
    def test_normalize_email_rejects(self, value):
        """Malformed emails are rejected."""
        with pytest.raises(BusinessRuleViolation):
            normalize_email(value)

    def test_format_currency(self):
        """Thousands separator and cents."""
        assert format_currency(Decimal("1234.567")) == "$1,234.57"


class TestErrorClassification:
    """Retry and skip categories."""

    def test_operational_error_is_transient(self):
        """Lost connections are retried."""
        exc = OperationalError("SELECT 1", {}, Exception("connection lost"))
        assert is_transient(exc)
        assert not is_skippable(exc)

    def test_integrity_error_is_skippable(self):
        """Duplicate keys skip the record instead of retrying the run."""
        exc = IntegrityError("INSERT", {}, Exception("duplicate key"))
        assert is_skippable(exc)
        assert not is_transient(exc)

    def test_not_found_is_skippable(self):
        """Missing records skip."""
        assert is_skippable(NotFoundError("gone"))

    def test_business_rule_neither(self):
        """Validation errors are neither retried nor skipped."""
        exc = BusinessRuleViolation("bad input")
        assert not is_transient(exc)
        assert not is_skippable(exc)

    def test_stale_settings_keeps_processed_ids(self):
        """Aborted runs report who was already handled."""
        exc = StaleSettingsError("changed", processed_user_ids=[1, 2])
        assert exc.processed_user_ids == [1, 2]
        assert StaleSettingsError("changed").processed_user_ids == []


class TestRollbackDecorator:
    """with_rollback_on_error."""

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, mock_session):
        """Any exception triggers rollback and propagates."""

        @with_rollback_on_error
        async def failing(session):
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await failing(session=mock_session)

        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_success_does_not_roll_back(self, mock_session):
        """Normal return leaves the session alone."""

        @with_rollback_on_error
        async def ok(session):
            return 42

        assert await ok(session=mock_session) == 42
        mock_session.rollback.assert_not_awaited()
