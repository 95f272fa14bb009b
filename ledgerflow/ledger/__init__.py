"""Write-side ledger components: the mutator and the fixed-payment poster."""

from ledgerflow.ledger.fixed_payments import (
    FixedPaymentPoster,
    charge_day_of_month,
    planned_amount,
)
from ledgerflow.ledger.mutator import LedgerMutator

__all__ = [
    "FixedPaymentPoster",
    "LedgerMutator",
    "charge_day_of_month",
    "planned_amount",
]
