"""Mutation guards and entitlement policies."""

from ledgerflow.validation.entitlements import (
    EntitlementPolicy,
    FreeTierEntitlements,
    UnlimitedEntitlements,
)
from ledgerflow.validation.validator import LedgerValidator

__all__ = [
    "EntitlementPolicy",
    "FreeTierEntitlements",
    "UnlimitedEntitlements",
    "LedgerValidator",
]
