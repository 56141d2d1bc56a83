"""
ROI accrual calculator.

Daily ROI on approved principal with a lifetime cap expressed in days.
The approval day is accrual day 0. ``for_date`` is the calendar day
being paid, normally yesterday in the payout timezone.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, tzinfo
from decimal import Decimal

from payout_engine.models.deposit import Deposit
from payout_engine.utils.datetime_utils import days_between


@dataclass(frozen=True)
class ROIAccrual:
    """ROI figures for one user and one calendar day."""

    lifetime_roi: Decimal
    today_roi: Decimal
    accruing_deposits: int = 0


def days_since_approval(
    approved_at: datetime | date,
    as_of: datetime | date,
    tz: tzinfo = UTC,
) -> int:
    """
    Whole calendar days between approval and ``as_of``.

    Both ends are normalized to the start of their day in ``tz``, so the
    time of approval never changes the count.
    """
    return days_between(approved_at, as_of, tz)


def calculate_roi(
    deposits: Iterable[Deposit],
    daily_roi: Decimal,
    max_days: int,
    for_date: date,
    tz: tzinfo = UTC,
) -> ROIAccrual:
    """
    Sum ROI over a user's deposits.

    For each accruing deposit with day index ``i`` (0 on the approval
    day): the day pays ``amount * daily_roi`` while ``0 <= i < max_days``,
    and lifetime ROI covers ``min(i + 1, max_days)`` days.

    Args:
        deposits: User deposits; non-approved ones are ignored
        daily_roi: Daily rate as a fraction
        max_days: Accrual days before the cap
        for_date: Calendar day being paid
        tz: Timezone defining day boundaries

    Returns:
        ROIAccrual with lifetime and day totals
    """
    lifetime = Decimal("0")
    today = Decimal("0")
    accruing = 0
    rate = Decimal(daily_roi)

    for deposit in deposits:
        if not deposit.accrues:
            continue

        index = days_since_approval(deposit.approved_at, for_date, tz)
        daily_amount = Decimal(deposit.amount) * rate

        if 0 <= index < max_days:
            today += daily_amount
            accruing += 1

        accrued_days = min(max(index + 1, 0), max_days)
        lifetime += daily_amount * accrued_days

    return ROIAccrual(
        lifetime_roi=lifetime,
        today_roi=today,
        accruing_deposits=accruing,
    )
