"""Read-side queries: billing periods, period totals and credit pools."""

from ledgerflow.queries.periods import (
    account_period,
    billing_period,
    days_in_month,
    month_window,
    shift_month,
)
from ledgerflow.queries.pool import CreditPool, bank_key
from ledgerflow.queries.totals import PeriodTotalsCache

__all__ = [
    "account_period",
    "billing_period",
    "days_in_month",
    "month_window",
    "shift_month",
    "CreditPool",
    "bank_key",
    "PeriodTotalsCache",
]
