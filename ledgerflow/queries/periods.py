"""
Period Calculator

DESIGN DECISION: Billing periods are a pure function of
(account type, start day, month offset, now). Nothing here reads storage
or the clock, so the same inputs always give the same window.

- Cash accounts use calendar months.
- Credit accounts use a custom start day. When today is before that day
  the current window began last month. The start day is clamped to each
  month's length (31 becomes 28/29 in February) and re-clamped from the
  configured day at every boundary, so a 31st cycle returns to the 31st
  after February.

Windows are [start, end] with `end` the last second inside the window.
"""

import calendar
from datetime import datetime

from ledgerflow.models.ledger import Account, AccountType
from ledgerflow.models.results import ONE_SECOND, PeriodWindow


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """Move (year, month) by `offset` whole months, either direction."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def clamped_day(year: int, month: int, day: int) -> datetime:
    """Midnight of `day` in the given month, clamped to the month's length."""
    return datetime(year, month, min(day, days_in_month(year, month)))


def month_window(now: datetime, month_offset: int = 0) -> PeriodWindow:
    """The calendar month containing `now`, shifted by `month_offset`."""
    year, month = shift_month(now.year, now.month, month_offset)
    next_year, next_month = shift_month(year, month, 1)
    return PeriodWindow(
        start=datetime(year, month, 1),
        end=datetime(next_year, next_month, 1) - ONE_SECOND,
    )


def billing_period(
    account_type: AccountType,
    billing_cycle_start_day: int,
    month_offset: int,
    now: datetime,
) -> PeriodWindow:
    """
    Compute the billing window for an account.

    Args:
        account_type: Cash accounts always get calendar months
        billing_cycle_start_day: 1-31, used for credit accounts only
        month_offset: 0 for the current window, -1 for the previous, ...
        now: Reference moment (local wall-clock)

    Returns:
        PeriodWindow with an inclusive end one second before the next start
    """
    if account_type == AccountType.CASH:
        return month_window(now, month_offset)

    start_day = max(1, min(31, billing_cycle_start_day))

    anchor_year, anchor_month = now.year, now.month
    if now.day < start_day:
        anchor_year, anchor_month = shift_month(anchor_year, anchor_month, -1)

    year, month = shift_month(anchor_year, anchor_month, month_offset)
    next_year, next_month = shift_month(year, month, 1)

    return PeriodWindow(
        start=clamped_day(year, month, start_day),
        end=clamped_day(next_year, next_month, start_day) - ONE_SECOND,
    )


def account_period(account: Account, month_offset: int, now: datetime) -> PeriodWindow:
    return billing_period(account.type, account.billing_cycle_start_day, month_offset, now)
